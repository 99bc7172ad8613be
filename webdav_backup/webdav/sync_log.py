"""
Bounded audit trail of backup attempts
"""

from typing import TYPE_CHECKING

from pydantic import ValidationError

from webdav_backup.config import get_settings
from webdav_backup.utils.error_handler import safe_with_default
from webdav_backup.utils.mixins import LoggerMixin
from webdav_backup.webdav.models import SyncLogEntry

if TYPE_CHECKING:
    from webdav_backup.storage.kv import KeyValueStore

SYNC_LOG_KEY = "webdav_sync_logs"


class SyncAuditLog(LoggerMixin):
    """Append-only log capped at ``max_entries``; the oldest entry is evicted first."""

    def __init__(
        self,
        store: "KeyValueStore",
        max_entries: int | None = None,
        key: str = SYNC_LOG_KEY,
    ) -> None:
        self.store = store
        self.max_entries = max_entries or get_settings().sync_log_max_entries
        self.key = key

    async def _load(self) -> list[SyncLogEntry]:
        raw = await self.store.get(self.key, [])
        entries: list[SyncLogEntry] = []
        for item in raw or []:
            try:
                entries.append(SyncLogEntry.model_validate(item))
            except ValidationError as e:
                self.logger.warning("Skipping invalid sync log entry", error=str(e))
        return entries

    @safe_with_default("append sync log entry", default_value=None)
    async def append(self, trigger: str, success: bool, message: str) -> None:
        entries = await self._load()
        entries.append(SyncLogEntry(trigger=trigger, success=success, message=message))
        if len(entries) > self.max_entries:
            del entries[: len(entries) - self.max_entries]
        await self.store.set(
            self.key, [entry.model_dump(mode="json") for entry in entries]
        )

    async def entries(self, limit: int | None = None) -> list[SyncLogEntry]:
        """Oldest first; ``limit`` keeps only the most recent entries."""
        entries = await self._load()
        if limit is not None:
            return entries[-limit:] if limit > 0 else []
        return entries

    async def recent(self) -> list[SyncLogEntry]:
        """The most recent entries, as many as are shown to the user."""
        return await self.entries(get_settings().sync_log_display_limit)

    async def clear(self) -> None:
        await self.store.set(self.key, [])
        self.logger.info("Sync log cleared")
