"""In-memory databank driver."""

from collections.abc import Mapping
from typing import Any

from ..indexing import MemoryIndexStore
from .keyvalue import KeyValueDatabank


class MemoryDatabank(KeyValueDatabank):
    """Process-local storage of encoded values, mainly for testing.

    Values are kept as encoded JSON, so nothing a caller does to a value
    it passed in or got back can change what is stored. Records and index
    sets are created at connect and dropped at disconnect.
    """

    driver = "memory"

    def __init__(
        self,
        schema: Mapping[str, Any] | None = None,
        tolerate_index_errors: bool = False,
    ):
        super().__init__(
            schema,
            index_store=MemoryIndexStore(),
            tolerate_index_errors=tolerate_index_errors,
        )
        self._items: dict[str, bytes] = {}

    async def _connect(self, params: dict[str, Any]) -> None:
        self._items = {}
        await self.indexer.store.clear()

    async def _disconnect(self) -> None:
        self._items = {}
        await self.indexer.store.clear()

    async def _get(self, key: str) -> bytes | None:
        return self._items.get(key)

    async def _add(self, key: str, data: bytes) -> bool:
        if key in self._items:
            return False
        self._items[key] = data
        return True

    async def _replace(self, key: str, data: bytes) -> bool:
        if key not in self._items:
            return False
        self._items[key] = data
        return True

    async def _remove(self, key: str) -> bool:
        return self._items.pop(key, None) is not None

    async def _scan(self, prefix: str) -> list[str]:
        return [key for key in self._items if key.startswith(prefix)]

    def get_size(self) -> int:
        """Number of stored records."""
        return len(self._items)
