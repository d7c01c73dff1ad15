"""Base for drivers backed by a plain key/value store.

Such stores (an in-process dict, a cache server) can get, set and delete
keys but have no query language, so search on indexed properties goes
through secondary index sets kept by an `IndexMaintainer`.
"""

import logging
from abc import abstractmethod
from collections.abc import Awaitable, Mapping
from typing import Any

from ..codec import decode, encode
from ..errors import AlreadyExistsError, IndexMaintenanceError, NoSuchThingError
from ..indexing import DEFAULT_INDEX_PREFIX, IndexMaintainer, IndexStore
from ..matcher import matches_criteria
from .base import Databank

logger = logging.getLogger(__name__)


class KeyValueDatabank(Databank):
    """Databank over get/set/delete primitives with secondary indices.

    By default a failed index update fails the whole mutation with
    `IndexMaintenanceError`; the record itself may already have been
    written, and `reindex` repairs the sets. With
    ``tolerate_index_errors=True`` the failure is logged and the mutation
    succeeds.
    """

    def __init__(
        self,
        schema: Mapping[str, Any] | None = None,
        index_store: IndexStore | None = None,
        tolerate_index_errors: bool = False,
        index_prefix: str = DEFAULT_INDEX_PREFIX,
    ):
        super().__init__(schema)
        if index_store is None:
            raise ValueError("KeyValueDatabank needs an index store")
        self.indexer = IndexMaintainer(self.schema, index_store, index_prefix)
        self.tolerate_index_errors = tolerate_index_errors

    # Store primitives

    @abstractmethod
    async def _get(self, key: str) -> bytes | None:
        """Raw value for `key`, or None."""
        pass

    @abstractmethod
    async def _add(self, key: str, data: bytes) -> bool:
        """Set `key` only if absent. Returns False if it already existed."""
        pass

    @abstractmethod
    async def _replace(self, key: str, data: bytes) -> bool:
        """Set `key` only if present. Returns False if it did not exist."""
        pass

    @abstractmethod
    async def _remove(self, key: str) -> bool:
        """Delete `key`. Returns False if it did not exist."""
        pass

    @abstractmethod
    async def _scan(self, prefix: str) -> list[str]:
        """Every key starting with `prefix`."""
        pass

    async def _get_many(self, keys: list[str]) -> list[bytes | None]:
        return [await self._get(key) for key in keys]

    # Databank operations

    async def _create(self, type_: str, id_: Any, value: Any) -> Any:
        key = self.to_key(type_, id_)
        if not await self._add(key, encode(value)):
            raise AlreadyExistsError(type_, str(id_))
        await self._maintain(self.indexer.index(type_, key, value), type_, id_)
        return value

    async def _read(self, type_: str, id_: Any) -> Any:
        data = await self._get(self.to_key(type_, id_))
        if data is None:
            raise NoSuchThingError(type_, str(id_))
        return decode(data)

    async def _update(self, type_: str, id_: Any, value: Any) -> Any:
        key = self.to_key(type_, id_)
        indexed = self.indexer.is_indexed(type_)

        if indexed:
            old = await self._read(type_, id_)
            await self._maintain(self.indexer.deindex(type_, key, old), type_, id_)

        if not await self._replace(key, encode(value)):
            raise NoSuchThingError(type_, str(id_))

        if indexed:
            await self._maintain(self.indexer.index(type_, key, value), type_, id_)
        return value

    async def _delete(self, type_: str, id_: Any) -> None:
        key = self.to_key(type_, id_)

        if self.indexer.is_indexed(type_):
            old = await self._read(type_, id_)
            await self._maintain(self.indexer.deindex(type_, key, old), type_, id_)

        if not await self._remove(key):
            raise NoSuchThingError(type_, str(id_))

    async def _search(self, type_: str, criteria: dict[str, Any]) -> list[Any]:
        indexed, _ = self.indexer.partition(type_, criteria)
        if indexed:
            keys = sorted(await self.indexer.candidates(type_, indexed))
        else:
            keys = sorted(await self._scan(f"{type_}:"))

        results = []
        for data in await self._get_many(keys):
            # Index sets can outlive their records.
            if data is None:
                continue
            value = decode(data)
            if matches_criteria(value, criteria):
                results.append(value)
        return results

    async def _read_all(self, type_: str, ids: list[Any]) -> dict[Any, Any]:
        keys = [self.to_key(type_, id_) for id_ in ids]
        values = await self._get_many(keys)
        return {
            id_: None if data is None else decode(data)
            for id_, data in zip(ids, values)
        }

    # Index upkeep

    async def reindex(self, type_: str) -> int:
        """Rebuild the index sets of `type_` from the stored records.

        Returns the number of records indexed.
        """
        self._require_connection()
        with self._translate(type_):
            keys = sorted(await self._scan(f"{type_}:"))
            values = await self._get_many(keys)
            records = [
                (key, decode(data))
                for key, data in zip(keys, values)
                if data is not None
            ]
            count = await self.indexer.rebuild(type_, records)
        logger.info(f"Rebuilt index for '{type_}' from {count} records")
        return count

    async def _maintain(self, step: Awaitable[None], type_: str, id_: Any) -> None:
        try:
            await step
        except Exception as e:
            if self.tolerate_index_errors:
                logger.warning(f"Index update failed for ({type_}: {id_}): {e}")
                return
            raise IndexMaintenanceError(
                "Index update failed", e, type=type_, id=str(id_)
            ) from e
