"""Mapping Python objects onto databank records.

Subclass `DatabankObject` once per record type::

    class Person(DatabankObject):
        type = "person"

    DatabankObject.bank = bank
    evan = await Person.create({"username": "evan", "age": 43})
    await evan.update({"age": 44})

The record id is the value of the type's primary-key property (see
`Databank.pkey`). Subclasses may define any of these async hooks:

- ``before_get(id) -> id`` (classmethod) and ``after_get()``
- ``before_create(props) -> props`` (classmethod) and ``after_create()``
- ``before_update(props) -> props`` and ``after_update()``
- ``before_save()`` and ``after_save()``
- ``before_del()`` and ``after_del()``
"""

from collections.abc import Mapping
from typing import Any, ClassVar, TypeVar

from .drivers.base import Databank
from .errors import DatabankError

T = TypeVar("T", bound="DatabankObject")


class DatabankObject:
    """A record whose properties are instance attributes.

    Properties live in the instance namespace, so a record property may
    shadow a class attribute on the instance. Operations always use the
    class-level `type`, `bank` and `pkey`.
    """

    type: ClassVar[str] = ""
    bank: ClassVar[Databank | None] = None

    def __init__(self, properties: Mapping[str, Any] | None = None, **kwargs: Any):
        self._copy(properties or {})
        self._copy(kwargs)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.to_dict()!r}>"

    def __eq__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def _copy(self, properties: Mapping[str, Any]) -> None:
        for name, value in properties.items():
            setattr(self, name, value)

    def to_dict(self) -> dict[str, Any]:
        """Properties as a plain dict."""
        return {k: v for k, v in vars(self).items() if not k.startswith("_")}

    def key(self) -> Any:
        """Record id: the value of the primary-key property."""
        return self.__dict__.get(type(self).pkey())

    # Class-level access

    @classmethod
    def get_bank(cls) -> Databank:
        if cls.bank is None:
            raise DatabankError(f"No databank configured for {cls.__name__}")
        return cls.bank

    @classmethod
    def pkey(cls) -> str:
        bank = cls.bank
        if bank is None:
            return "id"
        return bank.pkey(cls.type)

    @classmethod
    async def get(cls, id_: Any) -> T:
        """Fetch one object by id."""
        id_ = await cls.before_get(id_)
        value = await cls.get_bank().read(cls.type, id_)
        return await cls._loaded(value)

    @classmethod
    async def read_all(cls, ids: list[Any]) -> dict[Any, T | None]:
        """Fetch many objects; missing ids map to None."""
        ids = [await cls.before_get(id_) for id_ in ids]
        values = await cls.get_bank().read_all(cls.type, ids)
        results: dict[Any, T | None] = {}
        for id_, value in values.items():
            results[id_] = None if value is None else await cls._loaded(value)
        return results

    @classmethod
    async def search(cls, criteria: Mapping[str, Any]) -> list[T]:
        """Every object matching `criteria`."""
        values = await cls.get_bank().find(cls.type, criteria)
        return [cls(value) for value in values]

    @classmethod
    async def create(cls, properties: Mapping[str, Any]) -> T:
        """Store a new object built from `properties`."""
        properties = await cls.before_create(dict(properties))
        id_ = properties.get(cls.pkey())
        if id_ is None:
            raise DatabankError(
                f"Cannot create {cls.__name__} without '{cls.pkey()}'"
            )
        value = await cls.get_bank().create(cls.type, id_, properties)
        inst = cls(value)
        await inst.after_create()
        return inst

    @classmethod
    async def _loaded(cls, value: Any) -> T:
        inst = cls(value)
        await inst.after_get()
        return inst

    # Instance operations

    async def update(self: T, properties: Mapping[str, Any]) -> T:
        """Merge `properties` into this object and store it."""
        cls = type(self)
        properties = await self.before_update(dict(properties))
        self._copy(properties)
        value = await cls.get_bank().update(
            cls.type, cls.key(self), cls.to_dict(self)
        )
        self._copy(value)
        await self.after_update()
        return self

    async def save(self: T) -> T:
        """Store this object, creating or replacing the record."""
        cls = type(self)
        await self.before_save()
        value = await cls.get_bank().save(
            cls.type, cls.key(self), cls.to_dict(self)
        )
        self._copy(value)
        await self.after_save()
        return self

    async def delete(self) -> None:
        """Delete this object's record."""
        cls = type(self)
        await self.before_del()
        await cls.get_bank().delete(cls.type, cls.key(self))
        await self.after_del()

    # Hooks

    @classmethod
    async def before_get(cls, id_: Any) -> Any:
        return id_

    async def after_get(self) -> None:
        pass

    @classmethod
    async def before_create(cls, properties: dict[str, Any]) -> dict[str, Any]:
        return properties

    async def after_create(self) -> None:
        pass

    async def before_update(self, properties: dict[str, Any]) -> dict[str, Any]:
        return properties

    async def after_update(self) -> None:
        pass

    async def before_save(self) -> None:
        pass

    async def after_save(self) -> None:
        pass

    async def before_del(self) -> None:
        pass

    async def after_del(self) -> None:
        pass
