"""Flat-file JSON message store.

The whole collection lives in one pretty-printed JSON array, newest first.
Every mutation reads the full file, changes it in memory and writes it
back.  Mutations are serialized through a per-store ``asyncio.Lock`` so
overlapping requests in this process cannot lose each other's updates.
Multiple processes sharing one file are still unsafe.
"""

import asyncio
import json
import logging
import os
from pathlib import Path

from pydantic import ValidationError

from contact_api.models.message import Message

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Reading or writing the backing file failed."""


class MessageStore:
    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    # Blocking helpers, run via asyncio.to_thread

    def _ensure_sync(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        if not self._path.exists():
            self._path.write_text("[]\n", encoding="utf-8")
            logger.info("Created message store at %s", self._path)

    def _read_sync(self) -> list[Message]:
        self._ensure_sync()
        raw = self._path.read_text(encoding="utf-8")
        if not raw.strip():
            return []
        data = json.loads(raw)
        if not isinstance(data, list):
            raise ValueError(f"expected a JSON array, got {type(data).__name__}")
        return [Message(**item) for item in data]

    def _write_sync(self, items: list[Message]) -> None:
        self._ensure_sync()
        payload = json.dumps(
            [m.model_dump(mode="json") for m in items],
            indent=2,
            ensure_ascii=False,
        )
        # Write a sibling temp file and swap it in so readers never see half a file
        tmp = self._path.with_name(self._path.name + ".tmp")
        tmp.write_text(payload + "\n", encoding="utf-8")
        os.replace(tmp, self._path)

    # Public API

    async def ensure(self) -> None:
        """Create the parent directory and an empty collection if absent."""
        try:
            await asyncio.to_thread(self._ensure_sync)
        except OSError as e:
            raise StorageError(f"cannot initialize {self._path}: {e}") from e

    async def read_all(self) -> list[Message]:
        """Return every stored message, newest first."""
        try:
            return await asyncio.to_thread(self._read_sync)
        except (OSError, ValueError, TypeError, ValidationError) as e:
            # json.JSONDecodeError is a ValueError
            raise StorageError(f"cannot read {self._path}: {e}") from e

    async def write_all(self, items: list[Message]) -> None:
        """Overwrite the file with ``items``."""
        try:
            await asyncio.to_thread(self._write_sync, list(items))
        except (OSError, TypeError, ValueError) as e:
            raise StorageError(f"cannot write {self._path}: {e}") from e

    async def append(self, item: Message) -> None:
        """Insert ``item`` at the front of the collection."""
        async with self._lock:
            items = await self.read_all()
            items.insert(0, item)
            await self.write_all(items)

    async def remove_by_id(self, message_id: str) -> bool:
        """Delete the message with ``message_id``. Returns False if it was absent."""
        async with self._lock:
            items = await self.read_all()
            remaining = [m for m in items if m.id != message_id]
            if len(remaining) == len(items):
                return False
            await self.write_all(remaining)
            return True
