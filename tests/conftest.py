"""
Shared fixtures.

- Settings come from ``WEBDAV_BACKUP_*`` variables set per test (autouse)
- ``fake_dav`` is an in-memory WebDAV server exposed as a ``RequestTransport``
- The project root goes on ``sys.path`` so ``import webdav_backup`` resolves
"""

from __future__ import annotations

import sys
from datetime import datetime
from pathlib import Path
from typing import Any
from urllib.parse import quote, unquote, urlsplit

import pytest

_PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))

from webdav_backup.config import clear_settings_cache  # noqa: E402
from webdav_backup.storage import ConfigStore, MemoryStore  # noqa: E402
from webdav_backup.webdav.models import TransportResponse, WebDAVConfig  # noqa: E402
from webdav_backup.webdav.service import BackupEngine  # noqa: E402
from webdav_backup.webdav.sync_log import SyncAuditLog  # noqa: E402
from webdav_backup.webdav.transport import RequestTransport  # noqa: E402

REASONS = {
    200: "OK",
    201: "Created",
    204: "No Content",
    207: "Multi-Status",
    404: "Not Found",
    405: "Method Not Allowed",
    409: "Conflict",
    423: "Locked",
    500: "Internal Server Error",
    507: "Insufficient Storage",
}


@pytest.fixture(autouse=True)
def _test_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    """Per-test settings; the cached instance is dropped before and after."""
    monkeypatch.setenv("WEBDAV_BACKUP_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("WEBDAV_BACKUP_LOG_DIR", str(tmp_path / "logs"))
    clear_settings_cache()
    yield
    clear_settings_cache()


class FakeDavTransport(RequestTransport):
    """In-memory WebDAV server answering like a typical real one.

    ``failures`` maps an HTTP method to a status returned once for the next
    request with that method.
    """

    name = "fake"

    def __init__(self) -> None:
        self.directories: set[str] = {"/"}
        self.files: dict[str, str] = {}
        self.calls: list[tuple[str, str]] = []
        self.requests: list[dict[str, Any]] = []
        self.failures: dict[str, int] = {}

    @staticmethod
    def _path(url: str) -> str:
        path = unquote(urlsplit(url).path) or "/"
        if path != "/" and path.endswith("/"):
            path = path[:-1]
        return path

    @staticmethod
    def _parent(path: str) -> str:
        parent = path.rsplit("/", 1)[0]
        return parent or "/"

    def calls_for(self, method: str) -> list[str]:
        return [path for m, path in self.calls if m == method]

    def _respond(self, status: int, text: str = "") -> TransportResponse:
        return TransportResponse(
            ok=200 <= status < 300,
            status=status,
            status_text=REASONS.get(status, ""),
            text=text,
        )

    async def send(
        self,
        url: str,
        method: str,
        headers: dict[str, str],
        body: str | None = None,
    ) -> TransportResponse:
        path = self._path(url)
        self.calls.append((method, path))
        self.requests.append(
            {"url": url, "method": method, "headers": headers, "body": body}
        )

        if method in self.failures:
            return self._respond(self.failures.pop(method))

        if method == "PROPFIND":
            if headers.get("Depth") == "1":
                return self._listing(path)
            exists = path in self.directories or path in self.files
            return self._respond(207 if exists else 404)
        if method == "MKCOL":
            if path in self.directories or path in self.files:
                return self._respond(405)
            if self._parent(path) not in self.directories:
                return self._respond(409)
            self.directories.add(path)
            return self._respond(201)
        if method == "PUT":
            if self._parent(path) not in self.directories:
                return self._respond(409)
            self.files[path] = body or ""
            return self._respond(201)
        if method == "GET":
            if path not in self.files:
                return self._respond(404)
            return self._respond(200, self.files[path])
        if method == "DELETE":
            if path not in self.files:
                return self._respond(404)
            del self.files[path]
            return self._respond(204)
        return self._respond(405)

    def _listing(self, path: str) -> TransportResponse:
        if path not in self.directories:
            return self._respond(404)

        entries = [
            f"<d:response><d:href>{quote(path)}/</d:href><d:propstat><d:prop>"
            "<d:resourcetype><d:collection/></d:resourcetype>"
            "</d:prop></d:propstat></d:response>"
        ]
        for directory in sorted(self.directories):
            if directory != path and self._parent(directory) == path:
                entries.append(
                    f"<d:response><d:href>{quote(directory)}/</d:href>"
                    "<d:propstat><d:prop><d:resourcetype><d:collection/>"
                    "</d:resourcetype></d:prop></d:propstat></d:response>"
                )
        for file_path, content in sorted(self.files.items()):
            if self._parent(file_path) == path:
                entries.append(
                    f"<d:response><d:href>{quote(file_path)}</d:href>"
                    "<d:propstat><d:prop><d:resourcetype/>"
                    f"<d:getcontentlength>{len(content)}</d:getcontentlength>"
                    "</d:prop></d:propstat></d:response>"
                )
        body = (
            '<?xml version="1.0" encoding="utf-8"?>'
            '<d:multistatus xmlns:d="DAV:">' + "".join(entries) + "</d:multistatus>"
        )
        return self._respond(207, body)


class StubAccounts:
    def __init__(self, data: Any = None) -> None:
        self.data = data if data is not None else [{"id": 1, "site": "example"}]
        self.imported: list[Any] = []

    async def export_data(self) -> Any:
        return self.data

    async def import_data(self, data: Any) -> None:
        self.imported.append(data)


class StubPreferences:
    def __init__(self, data: Any = None) -> None:
        self.data = data if data is not None else {"theme": "dark"}
        self.imported: list[Any] = []

    async def export_preferences(self) -> Any:
        return self.data

    async def import_preferences(self, data: Any) -> None:
        self.imported.append(data)


class Clock:
    """Callable clock advanced by hand"""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def fake_dav() -> FakeDavTransport:
    return FakeDavTransport()


@pytest.fixture
def webdav_config() -> WebDAVConfig:
    return WebDAVConfig(
        enabled=True,
        server_url="https://dav.example.com",
        username="u",
        password="p",
        backup_path="/bk",
    )


@pytest.fixture
def memory_store(webdav_config) -> MemoryStore:
    return MemoryStore({"webdav_config": webdav_config.to_storage()})


@pytest.fixture
def clock() -> Clock:
    return Clock(datetime(2024, 3, 5, 7, 8, 9))


@pytest.fixture
def accounts() -> StubAccounts:
    return StubAccounts()


@pytest.fixture
def preferences() -> StubPreferences:
    return StubPreferences()


@pytest.fixture
def make_engine(memory_store, fake_dav, accounts, preferences, clock):
    """Engine over ``fake_dav`` (or another transport) sharing ``memory_store``."""

    def _make(transport: RequestTransport | None = None) -> BackupEngine:
        return BackupEngine(
            ConfigStore(memory_store),
            transport or fake_dav,
            accounts,
            preferences,
            SyncAuditLog(memory_store),
            clock=clock,
        )

    return _make
