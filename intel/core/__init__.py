"""
Core module: Configuration, logging, storage, clock and exception handling.
"""

from .clock import Clock, FixedClock, SystemClock
from .config import Config, config
from .exceptions import (
    ConfigurationError,
    IntelligenceError,
    RuleImportError,
    StorageError,
)
from .storage import JsonFileStore, KeyValueStore, MemoryStore, StoredValue, create_store

__all__ = [
    "Config",
    "config",
    "Clock",
    "SystemClock",
    "FixedClock",
    "KeyValueStore",
    "MemoryStore",
    "JsonFileStore",
    "StoredValue",
    "create_store",
    "IntelligenceError",
    "StorageError",
    "RuleImportError",
    "ConfigurationError",
]
