"""
Data models for WebDAV backup
"""

import json
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, SecretStr

from webdav_backup.webdav.exceptions import ParseError

SNAPSHOT_VERSION = "1.0"
SNAPSHOT_PREFIX = "backup-"
SNAPSHOT_SUFFIX = ".json"
SNAPSHOT_TIME_FORMAT = "%Y-%m-%d_%H-%M-%S"
DEFAULT_BACKUP_PATH = "/webdav"


class WebDAVConfig(BaseModel):
    """WebDAV connection configuration (one per installation)"""

    model_config = ConfigDict(validate_assignment=True)

    enabled: bool = Field(default=False, description="Backups enabled")
    server_url: str = Field(default="", description="WebDAV server URL")
    username: str = Field(default="")
    password: SecretStr = Field(default=SecretStr(""))
    backup_path: str = Field(
        default=DEFAULT_BACKUP_PATH, description="Backup directory on the server"
    )
    auto_sync_on_change: bool = Field(
        default=False, description="Upload a snapshot whenever local data changes"
    )
    last_backup_time: datetime | None = Field(
        default=None, description="Time of the last successful backup"
    )

    @property
    def is_configured(self) -> bool:
        """Enabled and pointing at a server with a user name"""
        return bool(self.enabled and self.server_url and self.username)

    def to_storage(self) -> dict[str, Any]:
        """Serialize for the key-value store, password included."""
        data = self.model_dump(mode="json")
        data["password"] = self.password.get_secret_value()
        return data


class Snapshot(BaseModel):
    """Body of one backup file"""

    model_config = ConfigDict(extra="allow")

    version: str = SNAPSHOT_VERSION
    timestamp: int = Field(description="Creation time in epoch milliseconds")
    accounts: Any = None
    preferences: Any = None

    @classmethod
    def filename_for(cls, moment: datetime) -> str:
        """``backup-YYYY-MM-DD_HH-mm-ss.json``; sorts lexically by time."""
        return f"{SNAPSHOT_PREFIX}{moment.strftime(SNAPSHOT_TIME_FORMAT)}{SNAPSHOT_SUFFIX}"


class SyncLogEntry(BaseModel):
    """One backup attempt in the audit trail"""

    timestamp: datetime = Field(default_factory=datetime.now)
    trigger: str
    success: bool
    message: str


class TransportResponse(BaseModel):
    """HTTP response as seen by the engine, whichever transport produced it"""

    model_config = ConfigDict(populate_by_name=True)

    ok: bool
    status: int
    status_text: str = Field(default="", alias="statusText")
    headers: dict[str, str] = Field(default_factory=dict)
    text: str = ""

    def json_body(self) -> Any:
        try:
            return json.loads(self.text or "{}")
        except ValueError as e:
            raise ParseError(f"Invalid JSON body: {e}") from e


class BackupResult(BaseModel):
    """Uniform outcome of every public engine operation"""

    success: bool
    message: str
    data: Any = None
    files: list[str] = Field(default_factory=list)

    @classmethod
    def ok(cls, message: str, **kwargs: Any) -> "BackupResult":
        return cls(success=True, message=message, **kwargs)

    @classmethod
    def fail(cls, message: str, **kwargs: Any) -> "BackupResult":
        return cls(success=False, message=message, **kwargs)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return self.model_dump(mode="json")
