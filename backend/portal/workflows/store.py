# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Execution Repository - durable source of truth for workflow executions.
All history in plain text files.

Thread-safe with async file locking to prevent race conditions.
Terminal records (completed/failed) are final and never rewritten.
"""

import asyncio
import json
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

import aiofiles
import aiofiles.os

from portal.core.logging import get_service_logger

from .exceptions import ExecutionStateError
from .models import ExecutionStatus, WorkflowExecution

logger = get_service_logger("execution_store")

_STATUS_RANK = {
    ExecutionStatus.PENDING: 0,
    ExecutionStatus.RUNNING: 1,
    ExecutionStatus.COMPLETED: 2,
    ExecutionStatus.FAILED: 2,
}


class ExecutionRepository:
    """
    Store and query workflow executions.

    Storage structure:
        executions/
        └── {YYYY-MM-DD}/
            ├── exec_20250101_120000_ab12cd34.json
            └── ...
    """

    def __init__(self, base_dir: Path):
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)

        # Async locks for thread-safe file operations
        self._locks: Dict[str, asyncio.Lock] = {}

    def _get_lock(self, file_path: str) -> asyncio.Lock:
        """Get or create lock for a specific file"""
        if file_path not in self._locks:
            self._locks[file_path] = asyncio.Lock()
        return self._locks[file_path]

    def _date_dir(self, execution: WorkflowExecution) -> Path:
        # Execution ids look like exec_YYYYMMDD_HHMMSS_hash
        try:
            date = datetime.strptime(execution.id.split("_")[1], "%Y%m%d")
        except (IndexError, ValueError):
            date = execution.started_at
        return self.base_dir / date.strftime("%Y-%m-%d")

    def _execution_file(self, execution: WorkflowExecution) -> Path:
        return self._date_dir(execution) / f"{execution.id}.json"

    async def _read(self, path: Path) -> Optional[WorkflowExecution]:
        if not await aiofiles.os.path.exists(path):
            return None
        async with aiofiles.open(path, "r") as f:
            return WorkflowExecution.model_validate_json(await f.read())

    async def _write(self, path: Path, execution: WorkflowExecution) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(path, "w") as f:
            await f.write(json.dumps(execution.model_dump(by_alias=True, mode="json"), indent=2))

    def _check_transition(self, stored: WorkflowExecution, execution: WorkflowExecution) -> None:
        if stored.status.is_terminal or _STATUS_RANK[execution.status] < _STATUS_RANK[stored.status]:
            raise ExecutionStateError(execution.id, stored.status.value, execution.status.value)

    async def create(self, execution: WorkflowExecution) -> str:
        """Persist a new execution. Returns the file path."""
        path = self._execution_file(execution)
        async with self._get_lock(str(path)):
            await self._write(path, execution)
        logger.debug(f"Execution created: {execution.id}")
        return str(path)

    async def update(self, execution: WorkflowExecution) -> str:
        """
        Persist a state change for an existing execution.

        Raises:
            ExecutionStateError: Stored record is terminal, or the status
                would move backwards
        """
        path = self._execution_file(execution)
        async with self._get_lock(str(path)):
            stored = await self._read(path)
            if stored is not None:
                self._check_transition(stored, execution)
            await self._write(path, execution)
        return str(path)

    async def upsert(self, execution: WorkflowExecution) -> str:
        """Create or update; the same transition rules apply."""
        return await self.update(execution)

    async def get(self, execution_id: str) -> Optional[WorkflowExecution]:
        """
        Get execution by ID.

        Looks in the date directory encoded in the id, then searches all dates.
        """
        try:
            date = datetime.strptime(execution_id.split("_")[1], "%Y%m%d").strftime("%Y-%m-%d")
            execution = await self._read(self.base_dir / date / f"{execution_id}.json")
            if execution is not None:
                return execution
        except (IndexError, ValueError):
            pass

        for date_dir in self.base_dir.glob("*"):
            if not date_dir.is_dir():
                continue
            execution = await self._read(date_dir / f"{execution_id}.json")
            if execution is not None:
                return execution

        return None

    async def list(
        self,
        workflow_id: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 100,
    ) -> List[WorkflowExecution]:
        """
        List executions with optional filters, newest first.

        Args:
            workflow_id: Filter by workflow
            status: Filter by status (pending/running/completed/failed)
            limit: Max results to return
        """
        executions: List[WorkflowExecution] = []

        for date_dir in sorted(self.base_dir.glob("*"), reverse=True):
            if not date_dir.is_dir():
                continue

            for execution_file in sorted(date_dir.glob("exec_*.json"), reverse=True):
                try:
                    execution = await self._read(execution_file)
                except ValueError as e:
                    logger.warning(f"Failed to load execution {execution_file}: {e}")
                    continue
                if execution is None:
                    continue

                if workflow_id and execution.workflow_id != workflow_id:
                    continue
                if status and execution.status.value != status:
                    continue

                executions.append(execution)
                if len(executions) >= limit:
                    return executions

        return executions
