"""Secondary index maintenance for key/value drivers.

Drivers whose store only offers key lookup keep, for every indexed
property of a type, one set per property value holding the keys of the
records with that value::

    databank:index:<type>:<property>:<value>  ->  {"<type>:<id>", ...}

The maintainer only knows about sets; where they live is up to the
`IndexStore`. Mutations must follow this order or the index drifts:

- create: write record, then `index`
- update: read old record, `deindex` old, write record, `index` new
- delete: read old record, `deindex` old, delete record

None of this is atomic across a crash. Index sets are best-effort
metadata; `KeyValueDatabank.reindex` rebuilds them from primary data.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from typing import Any

from .codec import encode_text
from .matcher import MISSING, deep_property
from .schema import Schema

DEFAULT_INDEX_PREFIX = "databank:index"


class IndexStore(ABC):
    """Storage for named sets of record keys."""

    @abstractmethod
    async def add(self, name: str, member: str) -> None:
        """Add `member` to the set `name`."""
        pass

    @abstractmethod
    async def remove(self, name: str, member: str) -> None:
        """Remove `member` from the set `name`, if present."""
        pass

    @abstractmethod
    async def intersect(self, names: list[str]) -> set[str]:
        """Return members present in every named set.

        A single name returns that whole set; a missing set is empty.
        """
        pass

    @abstractmethod
    async def drop(self, prefix: str) -> int:
        """Delete every set whose name starts with `prefix`."""
        pass

    @abstractmethod
    async def clear(self) -> None:
        """Delete all sets."""
        pass


class MemoryIndexStore(IndexStore):
    """In-process index sets."""

    def __init__(self):
        self._sets: dict[str, set[str]] = {}

    async def add(self, name: str, member: str) -> None:
        self._sets.setdefault(name, set()).add(member)

    async def remove(self, name: str, member: str) -> None:
        members = self._sets.get(name)
        if members is None:
            return
        members.discard(member)
        if not members:
            del self._sets[name]

    async def intersect(self, names: list[str]) -> set[str]:
        if not names:
            return set()
        result = set(self._sets.get(names[0], ()))
        for name in names[1:]:
            result &= self._sets.get(name, set())
            if not result:
                break
        return result

    async def drop(self, prefix: str) -> int:
        doomed = [name for name in self._sets if name.startswith(prefix)]
        for name in doomed:
            del self._sets[name]
        return len(doomed)

    async def clear(self) -> None:
        self._sets.clear()

    def members(self, name: str) -> set[str]:
        """Copy of one set, for inspection."""
        return set(self._sets.get(name, ()))

    def names(self) -> list[str]:
        """Names of all non-empty sets."""
        return sorted(self._sets)


def _normalize(value: Any) -> Any:
    """Fold values that compare equal under the matcher onto one form."""
    if value is MISSING:
        return None
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, list | tuple):
        return [_normalize(v) for v in value]
    if isinstance(value, Mapping):
        return {k: _normalize(v) for k, v in value.items()}
    return value


def index_token(value: Any) -> str:
    """Canonical text for a property value inside an index set name.

    ``1`` and ``1.0`` share a token, ``43`` and ``"43"`` do not, and a
    missing property shares the token of ``None``.
    """
    return encode_text(_normalize(value))


class IndexMaintainer:
    """Keeps index sets in step with a type's records."""

    def __init__(
        self,
        schema: Schema,
        store: IndexStore,
        prefix: str = DEFAULT_INDEX_PREFIX,
    ):
        self.schema = schema
        self.store = store
        self.prefix = prefix

    def indices(self, type_: str) -> tuple[str, ...]:
        declaration = self.schema.get(type_)
        return declaration.indices if declaration else ()

    def is_indexed(self, type_: str) -> bool:
        return bool(self.indices(type_))

    def index_key(self, type_: str, prop: str, value: Any) -> str:
        return f"{self.prefix}:{type_}:{prop}:{index_token(value)}"

    def type_prefix(self, type_: str) -> str:
        return f"{self.prefix}:{type_}:"

    async def index(self, type_: str, key: str, value: Any) -> None:
        """Add `key` to the index set of every indexed property of `value`."""
        for prop in self.indices(type_):
            name = self.index_key(type_, prop, deep_property(value, prop))
            await self.store.add(name, key)

    async def deindex(self, type_: str, key: str, old_value: Any) -> None:
        """Remove `key` from the index sets `old_value` placed it in."""
        for prop in self.indices(type_):
            name = self.index_key(type_, prop, deep_property(old_value, prop))
            await self.store.remove(name, key)

    def partition(
        self, type_: str, criteria: Mapping[str, Any]
    ) -> tuple[dict[str, Any], dict[str, Any]]:
        """Split criteria into (indexed, unindexed) properties."""
        indices = self.indices(type_)
        indexed: dict[str, Any] = {}
        unindexed: dict[str, Any] = {}
        for prop, expected in criteria.items():
            if prop in indices:
                indexed[prop] = expected
            else:
                unindexed[prop] = expected
        return indexed, unindexed

    async def candidates(self, type_: str, indexed: Mapping[str, Any]) -> set[str]:
        """Keys of records matching every indexed criteria pair."""
        names = [self.index_key(type_, prop, value) for prop, value in indexed.items()]
        return await self.store.intersect(names)

    async def rebuild(self, type_: str, records: Iterable[tuple[str, Any]]) -> int:
        """Drop the type's index sets and re-derive them from `records`."""
        await self.store.drop(self.type_prefix(type_))
        count = 0
        for key, value in records:
            await self.index(type_, key, value)
            count += 1
        return count
