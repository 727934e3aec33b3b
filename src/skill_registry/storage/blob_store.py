"""Content-addressed file storage on local disk."""

from __future__ import annotations

import asyncio
import hashlib
from pathlib import Path


class LocalBlobStore:
    def __init__(self, root: str) -> None:
        self._root = Path(root)

    def _path_for(self, storage_id: str) -> Path:
        return self._root / storage_id[:2] / storage_id

    async def put(self, data: bytes) -> str:
        storage_id = hashlib.sha256(data).hexdigest()
        path = self._path_for(storage_id)

        def _write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            if not path.exists():
                path.write_bytes(data)

        await asyncio.to_thread(_write)
        return storage_id

    async def get(self, storage_id: str) -> bytes | None:
        path = self._path_for(storage_id)

        def _read() -> bytes | None:
            if not path.exists():
                return None
            return path.read_bytes()

        return await asyncio.to_thread(_read)

    async def delete(self, storage_id: str) -> None:
        path = self._path_for(storage_id)
        await asyncio.to_thread(path.unlink, True)
