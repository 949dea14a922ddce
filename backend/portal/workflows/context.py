# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Active Execution Index

In-process index of executions currently running. Used only to find an
execution for cancellation; the execution repository stays authoritative
and this index is lost on restart.
"""

import asyncio
from dataclasses import dataclass
from typing import Dict, List, Optional

from .models import WorkflowExecution


@dataclass
class ActiveExecution:
    """A running execution and the task driving its steps."""
    execution: WorkflowExecution
    task: Optional[asyncio.Task] = None
    cancelled: bool = False


class ActiveExecutionIndex:
    """Tracks in-flight executions by id."""

    def __init__(self):
        self._active: Dict[str, ActiveExecution] = {}

    def register(self, execution: WorkflowExecution) -> ActiveExecution:
        entry = ActiveExecution(execution=execution)
        self._active[execution.id] = entry
        return entry

    def discard(self, execution_id: str) -> None:
        self._active.pop(execution_id, None)

    def get(self, execution_id: str) -> Optional[ActiveExecution]:
        return self._active.get(execution_id)

    def executions(self) -> List[WorkflowExecution]:
        return [entry.execution for entry in self._active.values()]
