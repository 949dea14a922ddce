# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Credential Store - OAuth tokens per (user, tool).

Storage structure:
    credentials/
    ├── {sha256(user_id)}.json   # {"slack": {...StoredCredential}, "gmail": {...}}
    └── ...

One file per user; put() replaces any previous entry so there is never
more than one token set per (user, tool).
"""

import asyncio
import hashlib
import json
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional

import aiofiles
import aiofiles.os

from portal.integrations.models import OAuthTokens, StoredCredential


class CredentialStore(ABC):
    """Credential store collaborator interface."""

    @abstractmethod
    async def get(self, user_id: str, tool: str) -> Optional[StoredCredential]:
        ...

    @abstractmethod
    async def put(self, user_id: str, tool: str, tokens: OAuthTokens) -> StoredCredential:
        ...

    @abstractmethod
    async def delete(self, user_id: str, tool: str) -> bool:
        ...


class FileCredentialStore(CredentialStore):
    """JSON-file credential store with per-user async locks."""

    def __init__(self, base_dir: Path):
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self._locks: Dict[str, asyncio.Lock] = {}

    def _get_lock(self, user_id: str) -> asyncio.Lock:
        if user_id not in self._locks:
            self._locks[user_id] = asyncio.Lock()
        return self._locks[user_id]

    def _user_file(self, user_id: str) -> Path:
        digest = hashlib.sha256(user_id.encode("utf-8")).hexdigest()
        return self.base_dir / f"{digest}.json"

    async def _read(self, user_id: str) -> dict:
        user_file = self._user_file(user_id)
        if not await aiofiles.os.path.exists(user_file):
            return {}
        async with aiofiles.open(user_file, "r") as f:
            return json.loads(await f.read() or "{}")

    async def _write(self, user_id: str, entries: dict) -> None:
        user_file = self._user_file(user_id)
        if not entries:
            if await aiofiles.os.path.exists(user_file):
                await aiofiles.os.remove(user_file)
            return
        # Write to temp file, then rename over the live one
        temp_file = user_file.with_suffix(".tmp")
        async with aiofiles.open(temp_file, "w") as f:
            await f.write(json.dumps(entries, indent=2))
        await aiofiles.os.replace(temp_file, user_file)

    async def get(self, user_id: str, tool: str) -> Optional[StoredCredential]:
        async with self._get_lock(user_id):
            entries = await self._read(user_id)
        entry = entries.get(tool)
        if entry is None:
            return None
        credential = StoredCredential.model_validate(entry)
        if credential.user_id != user_id:
            return None
        return credential

    async def put(self, user_id: str, tool: str, tokens: OAuthTokens) -> StoredCredential:
        credential = StoredCredential(
            user_id=user_id,
            tool=tool,
            tokens=tokens,
            updated_at=datetime.now(timezone.utc),
        )
        async with self._get_lock(user_id):
            entries = await self._read(user_id)
            entries[tool] = credential.model_dump(by_alias=True, mode="json")
            await self._write(user_id, entries)
        return credential

    async def delete(self, user_id: str, tool: str) -> bool:
        async with self._get_lock(user_id):
            entries = await self._read(user_id)
            if tool not in entries:
                return False
            del entries[tool]
            await self._write(user_id, entries)
        return True
