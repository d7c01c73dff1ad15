"""Base databank interface.

A databank stores JSON-compatible values addressed by ``(type, id)``.
Types are namespaces chosen by the caller (``"user"``, ``"activity"``);
ids are unique within a type. No schema is required, but one may
declare a primary-key field and indexed properties per type.

Drivers implement the underscore methods. The public methods add the
parts of the contract every driver shares:

- connection state checks
- value isolation and primary-key injection
- per-record serialization of mutations
- translation of native failures into `BackendError`
"""

import asyncio
import inspect
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from typing import Any, ClassVar

from ..codec import clone
from ..errors import (
    AlreadyConnectedError,
    BackendError,
    DatabankError,
    DatabankNotImplementedError,
    NoSuchThingError,
    NotANumberError,
    NotAnArrayError,
    NotConnectedError,
)
from ..locks import KeyedLocks
from ..schema import DEFAULT_PKEY, TypeSchema, parse_schema

logger = logging.getLogger(__name__)

ResultCallback = Callable[[Any], Any]


def _is_number(value: Any) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


class Databank(ABC):
    """Abstract base class for databank drivers."""

    driver: ClassVar[str] = ""
    default_pkey: ClassVar[str] = DEFAULT_PKEY
    native_errors: ClassVar[tuple[type[BaseException], ...]] = ()

    def __init__(self, schema: Mapping[str, Any] | None = None):
        self.schema: dict[str, TypeSchema] = parse_schema(schema)
        self._connected = False
        self._locks = KeyedLocks()

    def __repr__(self) -> str:
        state = "connected" if self._connected else "disconnected"
        return f"<{type(self).__name__} {state}>"

    @property
    def connected(self) -> bool:
        return self._connected

    def pkey(self, type_: str) -> str:
        """Primary-key field name for a type."""
        declaration = self.schema.get(type_)
        if declaration and declaration.pkey:
            return declaration.pkey
        return self.default_pkey

    def to_key(self, type_: str, id_: Any) -> str:
        return f"{type_}:{id_}"

    # Lifecycle

    async def connect(self, params: Mapping[str, Any] | None = None) -> None:
        """Make the bank ready for use."""
        if self._connected:
            raise AlreadyConnectedError()
        with self._translate():
            await self._connect(dict(params or {}))
        self._connected = True
        logger.debug(f"Connected {self!r}")

    async def disconnect(self) -> None:
        """Release the bank's resources."""
        self._require_connection()
        with self._translate():
            await self._disconnect()
        self._connected = False
        logger.debug(f"Disconnected {self!r}")

    async def __aenter__(self) -> "Databank":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._connected:
            await self.disconnect()

    # CRUD

    async def create(self, type_: str, id_: Any, value: Any) -> Any:
        """Insert a new record. Raises `AlreadyExistsError` if present."""
        self._require_connection()
        value = self._prepare(type_, id_, value)
        async with self._hold(type_, id_):
            with self._translate(type_, id_):
                return await self._create(type_, id_, value)

    async def read(self, type_: str, id_: Any) -> Any:
        """Read a record. Raises `NoSuchThingError` if absent."""
        self._require_connection()
        with self._translate(type_, id_):
            return await self._read(type_, id_)

    async def update(self, type_: str, id_: Any, value: Any) -> Any:
        """Replace a record. Raises `NoSuchThingError` if absent."""
        self._require_connection()
        value = self._prepare(type_, id_, value)
        async with self._hold(type_, id_):
            with self._translate(type_, id_):
                return await self._update(type_, id_, value)

    async def delete(self, type_: str, id_: Any) -> None:
        """Delete a record. Raises `NoSuchThingError` if absent."""
        self._require_connection()
        async with self._hold(type_, id_):
            with self._translate(type_, id_):
                await self._delete(type_, id_)

    async def save(self, type_: str, id_: Any, value: Any) -> Any:
        """Update a record, creating it if it does not exist."""
        self._require_connection()
        value = self._prepare(type_, id_, value)
        async with self._hold(type_, id_):
            with self._translate(type_, id_):
                return await self._save(type_, id_, value)

    # Search and bulk reads

    async def search(
        self,
        type_: str,
        criteria: Mapping[str, Any] | None,
        on_result: ResultCallback,
    ) -> None:
        """Deliver every record of `type_` matching `criteria` to `on_result`.

        `on_result` may be a plain function or a coroutine function.
        Returning signals that the search is complete.
        """
        self._require_connection()
        with self._translate(type_):
            results = await self._search(type_, dict(criteria or {}))
        for value in results:
            outcome = on_result(value)
            if inspect.isawaitable(outcome):
                await outcome

    async def find(
        self, type_: str, criteria: Mapping[str, Any] | None = None
    ) -> list[Any]:
        """Return every record of `type_` matching `criteria`."""
        results: list[Any] = []
        await self.search(type_, criteria, results.append)
        return results

    async def read_all(self, type_: str, ids: list[Any]) -> dict[Any, Any]:
        """Read many records; absent ids map to None."""
        self._require_connection()
        with self._translate(type_):
            return await self._read_all(type_, list(ids))

    # Counters and arrays

    async def incr(self, type_: str, id_: Any) -> int | float:
        """Add one to a numeric record, starting from 1 if absent."""
        return await self._step(type_, id_, 1)

    async def decr(self, type_: str, id_: Any) -> int | float:
        """Subtract one from a numeric record, starting from -1 if absent."""
        return await self._step(type_, id_, -1)

    async def append(self, type_: str, id_: Any, item: Any) -> list[Any]:
        """Add `item` to the end of an array record."""
        item = clone(item)

        def modify(current: list[Any]) -> list[Any]:
            return [*current, item]

        return await self._modify_array(type_, id_, item, modify)

    async def prepend(self, type_: str, id_: Any, item: Any) -> list[Any]:
        """Add `item` to the start of an array record."""
        item = clone(item)

        def modify(current: list[Any]) -> list[Any]:
            return [item, *current]

        return await self._modify_array(type_, id_, item, modify)

    async def item(self, type_: str, id_: Any, index: int) -> Any:
        """Element `index` of an array record, or None if out of range.

        Negative indexes are out of range; they do not count from the end.
        """
        value = await self._read_array(type_, id_)
        if index < 0:
            return None
        try:
            return value[index]
        except IndexError:
            return None

    async def slice(
        self, type_: str, id_: Any, start: int, end: int | None = None
    ) -> list[Any]:
        """Elements `start` up to (not including) `end` of an array record."""
        value = await self._read_array(type_, id_)
        return value[start:end]

    # Helpers

    def _require_connection(self) -> None:
        if not self._connected:
            raise NotConnectedError()

    def _prepare(self, type_: str, id_: Any, value: Any) -> Any:
        """Private copy of `value` with the primary key injected."""
        value = clone(value)
        declaration = self.schema.get(type_)
        if declaration and declaration.pkey and isinstance(value, dict):
            value[declaration.pkey] = id_
        return value

    def _hold(self, type_: str, id_: Any):
        return self._locks.hold((type_, str(id_)))

    @contextmanager
    def _translate(self, type_: str | None = None, id_: Any = None) -> Iterator[None]:
        """Turn native driver failures into `BackendError`."""
        try:
            yield
        except DatabankError:
            raise
        except self.native_errors as e:
            raise BackendError(
                f"{self.driver or type(self).__name__} driver failure",
                e,
                type=type_,
                id=None if id_ is None else str(id_),
            ) from e

    async def _step(self, type_: str, id_: Any, delta: int) -> int | float:
        self._require_connection()

        def modify(current: Any) -> Any:
            if not _is_number(current):
                raise NotANumberError(type_, str(id_))
            return current + delta

        async with self._hold(type_, id_):
            with self._translate(type_, id_):
                return await self._read_and_modify(type_, id_, delta, modify)

    async def _modify_array(
        self,
        type_: str,
        id_: Any,
        item: Any,
        modify: Callable[[list[Any]], list[Any]],
    ) -> list[Any]:
        self._require_connection()

        def checked(current: Any) -> list[Any]:
            if not isinstance(current, list):
                raise NotAnArrayError(type_, str(id_))
            return modify(current)

        async with self._hold(type_, id_):
            with self._translate(type_, id_):
                return await self._read_and_modify(type_, id_, [item], checked)

    async def _read_array(self, type_: str, id_: Any) -> list[Any]:
        value = await self.read(type_, id_)
        if not isinstance(value, list):
            raise NotAnArrayError(type_, str(id_))
        return value

    # Driver implementation

    @abstractmethod
    async def _connect(self, params: dict[str, Any]) -> None:
        """Open connections, create directories, etc."""
        pass

    @abstractmethod
    async def _disconnect(self) -> None:
        """Release whatever `_connect` acquired."""
        pass

    @abstractmethod
    async def _create(self, type_: str, id_: Any, value: Any) -> Any:
        pass

    @abstractmethod
    async def _read(self, type_: str, id_: Any) -> Any:
        pass

    @abstractmethod
    async def _update(self, type_: str, id_: Any, value: Any) -> Any:
        pass

    @abstractmethod
    async def _delete(self, type_: str, id_: Any) -> None:
        pass

    async def _search(self, type_: str, criteria: dict[str, Any]) -> list[Any]:
        """Collect matching records. Drivers without search leave this out."""
        raise DatabankNotImplementedError("search")

    async def _save(self, type_: str, id_: Any, value: Any) -> Any:
        """Update, falling back to create.

        Runs under the record's lock, so a concurrent create through this
        bank cannot slip in between. Drivers with a native upsert should
        override this.
        """
        try:
            return await self._update(type_, id_, value)
        except NoSuchThingError:
            return await self._create(type_, id_, value)

    async def _read_all(self, type_: str, ids: list[Any]) -> dict[Any, Any]:
        async def read_one(id_: Any) -> Any:
            try:
                return await self._read(type_, id_)
            except NoSuchThingError:
                return None

        values = await asyncio.gather(*(read_one(id_) for id_ in ids))
        return dict(zip(ids, values))

    async def _read_and_modify(
        self,
        type_: str,
        id_: Any,
        default: Any,
        modify: Callable[[Any], Any],
    ) -> Any:
        """Create with `default` if absent, else update with `modify(current)`.

        Called with the record's lock held.
        """
        try:
            current = await self._read(type_, id_)
        except NoSuchThingError:
            return await self._create(type_, id_, default)
        return await self._update(type_, id_, modify(current))
