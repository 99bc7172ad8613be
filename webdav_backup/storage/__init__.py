"""Durable key-value storage and the configuration store built on it."""

from webdav_backup.storage.config_store import CONFIG_KEY, ConfigStore
from webdav_backup.storage.kv import JsonFileStore, KeyValueStore, MemoryStore

__all__ = [
    "CONFIG_KEY",
    "ConfigStore",
    "JsonFileStore",
    "KeyValueStore",
    "MemoryStore",
]
