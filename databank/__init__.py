"""Storage abstraction for JSON records addressed by type and id.

Provides one async interface over interchangeable drivers:

- **Drivers**: Memory, Disk (hash-sharded JSON files), SQLite
- **Atomic primitives**: exactly-once create, upsert, counters, arrays
- **Search**: exact-match criteria on dotted property paths
- **Secondary indices**: per-type indexed properties for key/value drivers
- **Configuration**: YAML files and environment variables
- **Object mapping**: `DatabankObject` with lifecycle hooks
"""

# Configuration
from databank.config import BankConfig, Config, bank_from_config, load_config

# Drivers
from databank.drivers import (
    Databank,
    KeyValueDatabank,
    available_drivers,
    driver_class,
    get_bank,
    register_driver,
)
from databank.drivers.disk import DiskDatabank
from databank.drivers.memory import MemoryDatabank
from databank.drivers.sqlite import SQLiteDatabank

# Errors
from databank.errors import (
    AlreadyConnectedError,
    AlreadyExistsError,
    BackendError,
    CodecError,
    ConfigError,
    DatabankError,
    DatabankNotImplementedError,
    IndexMaintenanceError,
    NoSuchThingError,
    NotANumberError,
    NotAnArrayError,
    NotConnectedError,
    TypeMismatchError,
    UnknownDriverError,
)

# Indexing
from databank.indexing import IndexMaintainer, IndexStore, MemoryIndexStore
from databank.matcher import MISSING, deep_property, matches_criteria

# Object mapping
from databank.objects import DatabankObject
from databank.schema import TypeSchema, parse_schema

__version__ = "0.1.0"

__all__ = [
    # Drivers
    "Databank",
    "KeyValueDatabank",
    "MemoryDatabank",
    "DiskDatabank",
    "SQLiteDatabank",
    "available_drivers",
    "driver_class",
    "get_bank",
    "register_driver",
    # Configuration
    "BankConfig",
    "Config",
    "bank_from_config",
    "load_config",
    "TypeSchema",
    "parse_schema",
    # Errors
    "DatabankError",
    "NotConnectedError",
    "AlreadyConnectedError",
    "AlreadyExistsError",
    "NoSuchThingError",
    "TypeMismatchError",
    "NotAnArrayError",
    "NotANumberError",
    "DatabankNotImplementedError",
    "BackendError",
    "CodecError",
    "IndexMaintenanceError",
    "ConfigError",
    "UnknownDriverError",
    # Search and indexing
    "MISSING",
    "deep_property",
    "matches_criteria",
    "IndexStore",
    "IndexMaintainer",
    "MemoryIndexStore",
    # Objects
    "DatabankObject",
]
