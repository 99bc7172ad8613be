"""WebDAV client and backup engine."""

from webdav_backup.webdav.exceptions import (
    ConfigValidationError,
    ParseError,
    ProtocolError,
    TransportError,
    TransportErrorKind,
)
from webdav_backup.webdav.host import LocalProxyChannel, WebDAVHost
from webdav_backup.webdav.listing import DirectoryListingParser, parse_listing
from webdav_backup.webdav.models import (
    BackupResult,
    Snapshot,
    SyncLogEntry,
    TransportResponse,
    WebDAVConfig,
)
from webdav_backup.webdav.paths import normalize_path
from webdav_backup.webdav.provisioner import DirectoryProvisioner
from webdav_backup.webdav.service import BackupEngine
from webdav_backup.webdav.sync_log import SyncAuditLog
from webdav_backup.webdav.transport import (
    DirectTransport,
    ProxiedTransport,
    ProxyChannel,
    RequestTransport,
    create_transport,
)

__all__ = [
    "BackupEngine",
    "BackupResult",
    "ConfigValidationError",
    "DirectTransport",
    "DirectoryListingParser",
    "DirectoryProvisioner",
    "LocalProxyChannel",
    "ParseError",
    "ProtocolError",
    "ProxiedTransport",
    "ProxyChannel",
    "RequestTransport",
    "Snapshot",
    "SyncAuditLog",
    "SyncLogEntry",
    "TransportError",
    "TransportErrorKind",
    "TransportResponse",
    "WebDAVConfig",
    "WebDAVHost",
    "create_transport",
    "normalize_path",
    "parse_listing",
]
