# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Agent-local workflow actions.

summarize, analyze and process run inside the engine and never go
through the integration router. Each takes the accumulated step context
and returns a dict that is shallow-merged back into it.
"""

import json
import re
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping

from portal.core.errors import UnsupportedActionError
from portal.workflows.agents import AgentProfile

MAX_SUMMARY_CHARS = 100
MAX_KEY_POINTS = 3

_SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+")

# Category -> trigger words, checked case-insensitively
CATEGORY_KEYWORDS: Dict[str, tuple] = {
    "business": ("customer", "revenue", "sales", "client", "contract", "invoice", "budget"),
    "communication": ("email", "message", "meeting", "call", "reply", "update", "slack"),
    "engineering": ("bug", "deploy", "release", "error", "build", "incident", "api"),
    "scheduling": ("deadline", "schedule", "tomorrow", "today", "calendar", "due"),
}


def extract_content(data: Mapping[str, Any]) -> str:
    """Pick the text an agent action works on."""
    for key in ("content", "text", "body"):
        value = data.get(key)
        if isinstance(value, str) and value:
            return value
    return json.dumps(dict(data), default=str)


def _key_points(content: str) -> List[str]:
    sentences = [s.strip() for s in _SENTENCE_SPLIT.split(content) if s.strip()]
    return sentences[:MAX_KEY_POINTS]


def _categorize(content: str) -> List[str]:
    lowered = content.lower()
    return [
        category
        for category, keywords in CATEGORY_KEYWORDS.items()
        if any(word in lowered for word in keywords)
    ]


def summarize(agent: AgentProfile, data: Mapping[str, Any]) -> Dict[str, Any]:
    content = extract_content(data)
    excerpt = content[:MAX_SUMMARY_CHARS]
    if len(content) > MAX_SUMMARY_CHARS:
        excerpt += "..."

    return {
        "summary": {
            "summary": f"Summary of content by {agent.name}: {excerpt}",
            "keyPoints": _key_points(content),
            "wordCount": len(content.split()),
            "processedBy": agent.name,
            "processedAt": datetime.now(timezone.utc).isoformat(),
        },
        "originalData": dict(data),
    }


def analyze(agent: AgentProfile, data: Mapping[str, Any]) -> Dict[str, Any]:
    content = extract_content(data)
    matched = _categorize(content)
    categories = matched or ["general"]
    confidence = round(min(0.5 + 0.15 * len(matched), 0.95), 2)

    return {
        "analysis": f"Analysis by {agent.name}: content relates to {', '.join(categories)}.",
        "confidence": confidence,
        "categories": categories,
        "processedBy": agent.name,
    }


def process(agent: AgentProfile, data: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "processed": True,
        "processedData": {**data, "processedBy": agent.name},
        "processedAt": datetime.now(timezone.utc).isoformat(),
    }


AGENT_ACTIONS: Dict[str, Callable[[AgentProfile, Mapping[str, Any]], Dict[str, Any]]] = {
    "summarize": summarize,
    "analyze": analyze,
    "process": process,
}


def run_agent_action(action: str, agent: AgentProfile, data: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Run one agent-local action.

    Raises:
        UnsupportedActionError: Unknown agent action
    """
    handler = AGENT_ACTIONS.get(action)
    if handler is None:
        raise UnsupportedActionError(action, "agent")
    return handler(agent, data)
