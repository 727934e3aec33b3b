"""Protocol for file blob storage."""

from __future__ import annotations

from typing import Protocol


class BlobStore(Protocol):
    async def put(self, data: bytes) -> str: ...

    async def get(self, storage_id: str) -> bytes | None: ...

    async def delete(self, storage_id: str) -> None: ...
