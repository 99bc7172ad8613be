"""
Wiring of stores, transport and engine for an application process
"""

from dataclasses import dataclass

from webdav_backup.config import get_settings
from webdav_backup.config.settings import Settings
from webdav_backup.storage import ConfigStore, JsonFileStore, KeyValueStore
from webdav_backup.utils import get_logger, setup_logging
from webdav_backup.webdav.host import LocalProxyChannel, WebDAVHost
from webdav_backup.webdav.service import (
    AccountDataSource,
    BackupEngine,
    PreferencesDataSource,
)
from webdav_backup.webdav.sync_log import SyncAuditLog
from webdav_backup.webdav.transport import DirectTransport, create_transport


@dataclass
class RuntimeContext:
    """Container for runtime components."""

    settings: Settings
    store: KeyValueStore
    config_store: ConfigStore
    sync_log: SyncAuditLog
    engine: BackupEngine
    host: WebDAVHost | None = None


def build_runtime(
    accounts: AccountDataSource,
    preferences: PreferencesDataSource,
    *,
    proxied: bool = False,
    store: KeyValueStore | None = None,
    configure_logging: bool = False,
) -> RuntimeContext:
    """Build one engine per process.

    With ``proxied=True`` the engine reaches the server through an in-process
    ``WebDAVHost``, mirroring a restricted caller talking to a privileged one.
    """
    settings = get_settings()
    if configure_logging:
        setup_logging()
    logger = get_logger("runtime")

    store = store or JsonFileStore(settings.store_path)
    config_store = ConfigStore(store)
    sync_log = SyncAuditLog(store, settings.sync_log_max_entries)

    host: WebDAVHost | None = None
    channel: LocalProxyChannel | None = None
    if proxied:
        host_engine = BackupEngine(
            config_store, DirectTransport(), accounts, preferences, sync_log
        )
        host = WebDAVHost(host_engine)
        channel = LocalProxyChannel(host)

    transport = create_transport(channel)
    engine = BackupEngine(config_store, transport, accounts, preferences, sync_log)

    logger.info(
        "WebDAV backup runtime ready",
        transport=transport.name,
        store=type(store).__name__,
    )
    return RuntimeContext(
        settings=settings,
        store=store,
        config_store=config_store,
        sync_log=sync_log,
        engine=engine,
        host=host,
    )
