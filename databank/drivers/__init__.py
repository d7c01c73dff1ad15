"""Pluggable databank drivers.

Provides one interface over different storage mechanisms:

- **MemoryDatabank**: in-process storage with secondary indices, for testing
- **DiskDatabank**: JSON files in a hash-sharded directory tree
- **SQLiteDatabank**: one SQLite table with native atomic primitives

Drivers are looked up by name with `get_bank`. Other packages can plug in
their own (a cache or document database client, say) with
`register_driver`, as long as the class honors the `Databank` contract.
"""

import importlib
from typing import Any

from ..errors import UnknownDriverError
from .base import Databank
from .keyvalue import KeyValueDatabank

_DRIVERS: dict[str, str] = {
    "memory": "databank.drivers.memory:MemoryDatabank",
    "disk": "databank.drivers.disk:DiskDatabank",
    "sqlite": "databank.drivers.sqlite:SQLiteDatabank",
}


def register_driver(name: str, target: str) -> None:
    """Register a driver class as ``"package.module:ClassName"``."""
    if ":" not in target:
        raise ValueError(f"Driver target must look like 'module:Class': {target}")
    _DRIVERS[name.lower()] = target


def available_drivers() -> list[str]:
    """Names of all registered drivers."""
    return sorted(_DRIVERS)


def driver_class(name: str) -> type[Databank]:
    """Import and return the class registered under `name`."""
    target = _DRIVERS.get(name.lower())
    if target is None:
        raise UnknownDriverError(name)

    module_name, _, class_name = target.partition(":")
    try:
        module = importlib.import_module(module_name)
        cls = getattr(module, class_name)
    except (ImportError, AttributeError) as e:
        raise UnknownDriverError(name) from e

    if not (isinstance(cls, type) and issubclass(cls, Databank)):
        raise UnknownDriverError(name)
    return cls


def get_bank(driver: str, **params: Any) -> Databank:
    """Instantiate the driver named `driver` with `params`."""
    return driver_class(driver)(**params)


__all__ = [
    "Databank",
    "KeyValueDatabank",
    "available_drivers",
    "driver_class",
    "get_bank",
    "register_driver",
]
