# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Agent Directory

Resolves agent ids to profiles. Agent CRUD lives elsewhere; the engine
only needs read access.

File layout (YAML or JSON, one agent per file):
    agent-definitions/
    ├── researcher.yaml    # {id, name, role, ...}
    └── writer.json
"""

import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Mapping, Optional

import yaml
from pydantic import BaseModel

from portal.core.logging import get_service_logger

logger = get_service_logger("agents")


class AgentProfile(BaseModel):
    id: str
    name: str = ""
    role: str = ""


class AgentDirectory(ABC):
    """Agent directory collaborator interface."""

    @abstractmethod
    async def resolve(self, agent_id: str) -> Optional[AgentProfile]:
        ...


class StaticAgentDirectory(AgentDirectory):
    """In-memory directory, mostly for tests and embedding."""

    def __init__(self, agents: Optional[Mapping[str, AgentProfile]] = None):
        self._agents: Dict[str, AgentProfile] = dict(agents or {})

    async def resolve(self, agent_id: str) -> Optional[AgentProfile]:
        return self._agents.get(agent_id)


class FileAgentDirectory(AgentDirectory):
    """
    Agent definitions loaded from disk.

    Files are read once and cached; call reload() after edits.
    """

    def __init__(self, agents_dir: Path):
        self.agents_dir = Path(agents_dir)
        self._agents: Optional[Dict[str, AgentProfile]] = None

    def reload(self) -> None:
        agents: Dict[str, AgentProfile] = {}
        if not self.agents_dir.exists():
            logger.warning(f"Agent definitions directory not found: {self.agents_dir}")
            self._agents = agents
            return

        for path in sorted(self.agents_dir.iterdir()):
            if path.suffix not in (".yaml", ".yml", ".json"):
                continue
            try:
                with open(path) as f:
                    raw = json.load(f) if path.suffix == ".json" else yaml.safe_load(f)
                profile = AgentProfile(
                    id=raw.get("id") or path.stem,
                    name=raw.get("name", ""),
                    role=raw.get("role", ""),
                )
            except (OSError, ValueError, yaml.YAMLError, AttributeError) as e:
                logger.warning(f"Skipping invalid agent definition {path.name}: {e}")
                continue
            agents[profile.id] = profile

        logger.info(f"Loaded {len(agents)} agent definitions from {self.agents_dir}")
        self._agents = agents

    async def resolve(self, agent_id: str) -> Optional[AgentProfile]:
        if self._agents is None:
            self.reload()
        return self._agents.get(agent_id)
