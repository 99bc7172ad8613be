"""
WebDAV backup engine

Creates, restores, lists and deletes snapshots of the local account and
preference data on a WebDAV server. Every public operation returns a
``BackupResult``; failures are data, not exceptions.
"""

import asyncio
from collections.abc import Callable
from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol

from webdav_backup.utils.mixins import LoggerMixin
from webdav_backup.webdav.exceptions import (
    ConfigValidationError,
    ProtocolError,
    WebDAVError,
)
from webdav_backup.webdav.listing import DirectoryListingParser
from webdav_backup.webdav.models import (
    SNAPSHOT_SUFFIX,
    BackupResult,
    Snapshot,
    SyncLogEntry,
    WebDAVConfig,
)
from webdav_backup.webdav.paths import file_url, normalize_path
from webdav_backup.webdav.protocol import (
    DELETE,
    GET,
    JSON_CONTENT_TYPE,
    PROPFIND,
    PROPFIND_LISTING_BODY,
    PROPFIND_PROBE_BODY,
    PUT,
    XML_CONTENT_TYPE,
    build_headers,
)
from webdav_backup.webdav.provisioner import DirectoryProvisioner
from webdav_backup.webdav.sync_log import SyncAuditLog
from webdav_backup.webdav.transport import RequestTransport

if TYPE_CHECKING:
    from webdav_backup.storage.config_store import ConfigStore

MANUAL_TRIGGER = "manual backup"
DATA_CHANGE_TRIGGER = "data change"

NOT_ENABLED_MESSAGE = "WebDAV backup is not enabled"

UPLOAD_FAILURE_DETAILS: dict[int, str] = {
    401: "authentication failed, check the username and password",
    403: "permission denied, check the account's access rights",
    404: "path not found, check the server URL and backup path",
    423: (
        "resource is locked; the file may be in use or the server is busy, "
        "retry later"
    ),
    507: "insufficient storage on the server",
    500: "internal server error",
    502: "bad gateway, the server is temporarily unavailable",
    503: "service unavailable, the server is temporarily overloaded",
}


class AccountDataSource(Protocol):
    """Local account records, exported and imported as an opaque blob"""

    async def export_data(self) -> Any: ...

    async def import_data(self, data: Any) -> None: ...


class PreferencesDataSource(Protocol):
    """Local user preferences, exported and imported as an opaque blob"""

    async def export_preferences(self) -> Any: ...

    async def import_preferences(self, data: Any) -> None: ...


def describe_upload_failure(status: int, status_text: str = "") -> str:
    """User-facing diagnostic for a rejected PUT"""
    message = f"Upload failed: {status}"
    detail = UPLOAD_FAILURE_DETAILS.get(status) or status_text
    return f"{message} - {detail}" if detail else message


def _status_message(prefix: str, status: int, status_text: str) -> str:
    return f"{prefix}: {status} {status_text}".rstrip()


class BackupEngine(LoggerMixin):
    """Snapshot upload/restore against the configured WebDAV server.

    Operations take an optional ``config``; without one the stored
    configuration is used. A snapshot upload moves through directory check,
    directory creation (as needed) and the PUT; only the audit log entry
    records the outcome.
    """

    def __init__(
        self,
        config_store: "ConfigStore",
        transport: RequestTransport,
        accounts: AccountDataSource,
        preferences: PreferencesDataSource,
        sync_log: SyncAuditLog,
        clock: Callable[[], datetime] = datetime.now,
        provisioner: DirectoryProvisioner | None = None,
        parser: DirectoryListingParser | None = None,
    ) -> None:
        self.config_store = config_store
        self.transport = transport
        self.accounts = accounts
        self.preferences = preferences
        self.sync_log = sync_log
        self.provisioner = provisioner or DirectoryProvisioner(transport)
        self.parser = parser or DirectoryListingParser()
        self._clock = clock

    # Configuration

    async def get_config(self) -> WebDAVConfig:
        return await self.config_store.load()

    async def save_config(self, config: WebDAVConfig) -> bool:
        return await self.config_store.save(config)

    async def _resolve(self, config: WebDAVConfig | None) -> WebDAVConfig:
        if config is not None:
            return config
        return await self.config_store.load()

    @staticmethod
    def _require_connection_settings(config: WebDAVConfig) -> None:
        if not config.is_configured:
            raise ConfigValidationError("Complete the WebDAV configuration first")

    @staticmethod
    def _require_valid_filename(filename: str) -> None:
        if not filename or "/" in filename or filename in (".", ".."):
            raise ConfigValidationError(f"Invalid backup file name: {filename!r}")

    # Operations

    async def test_connection(self, config: WebDAVConfig | None = None) -> BackupResult:
        """Depth-0 PROPFIND against the server root"""
        config = await self._resolve(config)
        try:
            self._require_connection_settings(config)
        except ConfigValidationError as e:
            return BackupResult.fail(str(e))

        try:
            response = await self.transport.send(
                config.server_url,
                PROPFIND,
                build_headers(config, XML_CONTENT_TYPE, depth=0),
                PROPFIND_PROBE_BODY,
            )
        except (WebDAVError, ValueError) as e:
            self.logger.warning("WebDAV connection test failed", error=str(e))
            return BackupResult.fail(f"Connection error: {e}")

        if response.ok:
            self.logger.info("WebDAV connection test succeeded")
            return BackupResult.ok("WebDAV connection test succeeded")

        return BackupResult.fail(
            _status_message("Connection failed", response.status, response.status_text)
        )

    async def upload(
        self, trigger: str = MANUAL_TRIGGER, config: WebDAVConfig | None = None
    ) -> BackupResult:
        """Create a new snapshot and record the attempt in the sync log"""
        config = await self._resolve(config)
        if not config.enabled:
            return BackupResult.fail(NOT_ENABLED_MESSAGE)

        try:
            result = await self._upload_snapshot(config)
        except ProtocolError as e:
            result = BackupResult.fail(e.diagnostic)
        except Exception as e:
            self.logger.error(
                "Backup upload raised", trigger=trigger, error=str(e), exc_info=True
            )
            result = BackupResult.fail(f"Upload error: {e}")

        await self.sync_log.append(trigger, result.success, result.message)
        return result

    async def _upload_snapshot(self, config: WebDAVConfig) -> BackupResult:
        # Both exports must finish before anything goes over the network.
        accounts, preferences = await asyncio.gather(
            self.accounts.export_data(),
            self.preferences.export_preferences(),
        )

        if not await self.provisioner.ensure_exists(config, config.backup_path):
            return BackupResult.fail("Cannot create backup directory")

        # One instant for the file name, the payload and last_backup_time.
        moment = self._clock()
        filename = Snapshot.filename_for(moment)
        snapshot = Snapshot(
            timestamp=int(moment.timestamp() * 1000),
            accounts=accounts,
            preferences=preferences,
        )

        response = await self.transport.send(
            file_url(config.server_url, config.backup_path, filename),
            PUT,
            build_headers(config, JSON_CONTENT_TYPE),
            snapshot.model_dump_json(indent=2),
        )

        if not response.ok:
            diagnostic = describe_upload_failure(response.status, response.status_text)
            self.logger.error(
                "Backup upload rejected",
                filename=filename,
                status=response.status,
                status_text=response.status_text,
            )
            raise ProtocolError(response.status, response.status_text, diagnostic)

        if not await self.config_store.save(
            config.model_copy(update={"last_backup_time": moment})
        ):
            self.logger.warning(
                "Backup uploaded but last_backup_time was not saved", filename=filename
            )

        self.logger.info("Backup uploaded", filename=filename)
        return BackupResult.ok(
            f"Backup uploaded: {filename}", data={"filename": filename}
        )

    async def download(
        self, filename: str, config: WebDAVConfig | None = None
    ) -> BackupResult:
        """Fetch one snapshot; ``data`` holds the parsed ``Snapshot``"""
        config = await self._resolve(config)
        if not config.enabled:
            return BackupResult.fail(NOT_ENABLED_MESSAGE)

        try:
            self._require_valid_filename(filename)
            response = await self.transport.send(
                file_url(config.server_url, config.backup_path, filename),
                GET,
                build_headers(config),
            )
            if not response.ok:
                return BackupResult.fail(
                    _status_message(
                        "Download failed", response.status, response.status_text
                    )
                )
            snapshot = Snapshot.model_validate(response.json_body())
        except (WebDAVError, ValueError) as e:
            self.logger.error("Backup download failed", filename=filename, error=str(e))
            return BackupResult.fail(f"Download error: {e}")

        return BackupResult.ok("Backup downloaded", data=snapshot)

    async def restore(
        self, filename: str, config: WebDAVConfig | None = None
    ) -> BackupResult:
        """Download a snapshot and hand its sections to the data sources"""
        result = await self.download(filename, config)
        if not result.success:
            return result

        snapshot: Snapshot = result.data
        try:
            if snapshot.accounts:
                await self.accounts.import_data(snapshot.accounts)
            if snapshot.preferences:
                await self.preferences.import_preferences(snapshot.preferences)
        except Exception as e:
            self.logger.error(
                "Backup restore failed", filename=filename, error=str(e), exc_info=True
            )
            return BackupResult.fail(f"Restore error: {e}")

        self.logger.info("Backup restored", filename=filename)
        return BackupResult.ok(f"Backup restored: {filename}", data=snapshot)

    async def list_backups(self, config: WebDAVConfig | None = None) -> BackupResult:
        """Snapshot names in ``files``, newest first"""
        config = await self._resolve(config)
        if not config.enabled:
            return BackupResult.fail(NOT_ENABLED_MESSAGE)

        try:
            response = await self.transport.send(
                normalize_path(config.server_url, config.backup_path),
                PROPFIND,
                build_headers(config, XML_CONTENT_TYPE, depth=1),
                PROPFIND_LISTING_BODY,
            )
        except (WebDAVError, ValueError) as e:
            self.logger.error("Backup listing failed", error=str(e))
            return BackupResult.fail(f"Listing error: {e}")

        if not response.ok:
            return BackupResult.fail(
                _status_message("Listing failed", response.status, response.status_text)
            )

        # Snapshot names embed a zero-padded timestamp, so lexical order is
        # chronological order.
        names = [
            name for name in self.parser.parse(response.text)
            if name.endswith(SNAPSHOT_SUFFIX)
        ]
        return BackupResult.ok(
            "Backup list retrieved", files=sorted(names, reverse=True)
        )

    async def delete(
        self, filename: str, config: WebDAVConfig | None = None
    ) -> BackupResult:
        config = await self._resolve(config)
        if not config.enabled:
            return BackupResult.fail(NOT_ENABLED_MESSAGE)

        try:
            self._require_valid_filename(filename)
            response = await self.transport.send(
                file_url(config.server_url, config.backup_path, filename),
                DELETE,
                build_headers(config),
            )
        except (WebDAVError, ValueError) as e:
            self.logger.error("Backup deletion failed", filename=filename, error=str(e))
            return BackupResult.fail(f"Delete error: {e}")

        if not response.ok:
            return BackupResult.fail(
                _status_message("Delete failed", response.status, response.status_text)
            )

        self.logger.info("Backup deleted", filename=filename)
        return BackupResult.ok(f"Backup deleted: {filename}")

    async def sync_on_data_change(self, trigger: str = DATA_CHANGE_TRIGGER) -> None:
        """Upload after a local data change when auto-sync is on.

        Never raises: whatever goes wrong ends up in the sync log.
        """
        try:
            config = await self.config_store.load()
        except Exception as e:
            self.logger.error("Sync check failed", trigger=trigger, error=str(e))
            await self.sync_log.append(trigger, False, f"Sync check failed: {e}")
            return

        if not (config.enabled and config.auto_sync_on_change):
            return

        self.logger.info("Local data changed, starting automatic sync", trigger=trigger)
        try:
            result = await self.upload(trigger, config)
        except Exception as e:
            self.logger.error(
                "Automatic sync raised", trigger=trigger, error=str(e), exc_info=True
            )
            await self.sync_log.append(trigger, False, f"Sync error: {e}")
            return

        if result.success:
            self.logger.info("Automatic sync succeeded", trigger=trigger)
        else:
            self.logger.error(
                "Automatic sync failed", trigger=trigger, message=result.message
            )

    # Sync log

    async def sync_logs(self, limit: int | None = None) -> list[SyncLogEntry]:
        return await self.sync_log.entries(limit)

    async def clear_sync_logs(self) -> None:
        await self.sync_log.clear()
