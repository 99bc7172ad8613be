"""
Read-through cached owner of the WebDAV configuration
"""

from pydantic import ValidationError

from webdav_backup.storage.kv import KeyValueStore
from webdav_backup.utils.error_handler import safe_with_default
from webdav_backup.utils.mixins import LoggerMixin
from webdav_backup.webdav.models import WebDAVConfig

CONFIG_KEY = "webdav_config"


class ConfigStore(LoggerMixin):
    """Single writer of the persisted ``WebDAVConfig``.

    ``load`` reads the backing store once and serves the cached copy after
    that; ``save`` writes through and replaces the cache. One instance per
    process; there is no concurrent-writer protection.
    """

    def __init__(self, store: KeyValueStore, key: str = CONFIG_KEY) -> None:
        self.store = store
        self.key = key
        self._cached: WebDAVConfig | None = None

    async def load(self) -> WebDAVConfig:
        if self._cached is not None:
            return self._cached

        raw = await self.store.get(self.key)
        if raw is None:
            self._cached = WebDAVConfig()
        else:
            try:
                self._cached = WebDAVConfig.model_validate(raw)
            except ValidationError as e:
                self.logger.warning(
                    "Stored WebDAV config is invalid, using defaults", error=str(e)
                )
                self._cached = WebDAVConfig()
        return self._cached

    @safe_with_default("save WebDAV config", default_value=False)
    async def save(self, config: WebDAVConfig) -> bool:
        await self.store.set(self.key, config.to_storage())
        self._cached = config
        return True

    def invalidate(self) -> None:
        """Drop the cached copy; the next ``load`` hits the store."""
        self._cached = None

    async def reload(self) -> WebDAVConfig:
        self.invalidate()
        return await self.load()
