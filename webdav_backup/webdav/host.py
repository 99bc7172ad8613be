"""
Privileged host side of the proxied transport

The host owns network access. Restricted callers send it message envelopes
through a ``ProxyChannel``; ``WebDAVHost.handle_message`` performs the work
and answers with ``{success, message?, data?}``.
"""

import copy
from typing import Any

from webdav_backup.utils.logger import mask_credentials
from webdav_backup.utils.mixins import LoggerMixin
from webdav_backup.webdav.exceptions import ChannelUnavailableError, TransportError
from webdav_backup.webdav.service import BackupEngine
from webdav_backup.webdav.transport import (
    WEBDAV_REQUEST_ACTION,
    DirectTransport,
    RequestTransport,
)

BACKUP_ACTION = "webdavBackup"
RESTORE_ACTION = "webdavRestore"
TEST_ACTION = "webdavTest"


class WebDAVHost(LoggerMixin):
    """Answers WebDAV messages coming from restricted contexts"""

    def __init__(
        self,
        engine: BackupEngine | None = None,
        transport: RequestTransport | None = None,
    ) -> None:
        self.engine = engine
        self.transport = transport or DirectTransport()

    async def handle_message(self, message: dict[str, Any]) -> dict[str, Any]:
        action = message.get("action")
        try:
            if action == WEBDAV_REQUEST_ACTION:
                return await self._handle_request(message)
            if action in (BACKUP_ACTION, RESTORE_ACTION, TEST_ACTION):
                return await self._handle_engine_action(action, message)
        except Exception as e:
            self.logger.error(
                "WebDAV host action failed", action=action, error=str(e), exc_info=True
            )
            return {"success": False, "message": str(e)}

        return {"success": False, "message": f"Unknown WebDAV action: {action}"}

    async def _handle_request(self, message: dict[str, Any]) -> dict[str, Any]:
        url = message.get("url")
        if not url:
            return {"success": False, "message": "Missing request URL"}

        options = message.get("options") or {}
        method = options.get("method", "GET")
        self.logger.debug(
            "Forwarding WebDAV request", method=method, url=mask_credentials(url)
        )
        try:
            response = await self.transport.send(
                url, method, dict(options.get("headers") or {}), options.get("body")
            )
        except TransportError as e:
            return {"success": False, "message": e.message or "Network request failed"}

        return {"success": True, "data": response.model_dump(by_alias=True)}

    async def _handle_engine_action(
        self, action: str, message: dict[str, Any]
    ) -> dict[str, Any]:
        if self.engine is None:
            return {"success": False, "message": "No backup engine on this host"}

        if action == BACKUP_ACTION:
            result = await self.engine.upload()
        elif action == RESTORE_ACTION:
            result = await self.engine.download(message.get("filename", ""))
        else:
            result = await self.engine.test_connection()
        return result.to_dict()


class LocalProxyChannel(LoggerMixin):
    """In-process ``ProxyChannel`` delivering messages to a ``WebDAVHost``.

    A detached channel behaves like a host whose endpoint does not exist;
    an invalidated one like a host context that has gone away for good.
    """

    def __init__(self, host: WebDAVHost | None = None) -> None:
        self._host = host
        self._valid = True

    @property
    def is_valid(self) -> bool:
        return self._valid

    def attach(self, host: WebDAVHost) -> None:
        self._host = host

    def detach(self) -> None:
        self._host = None

    def invalidate(self) -> None:
        self._valid = False

    async def send_message(self, message: dict[str, Any]) -> dict[str, Any] | None:
        if self._host is None:
            raise ChannelUnavailableError(
                "Could not establish connection. Receiving end does not exist."
            )
        # Messages cross the channel by value.
        return await self._host.handle_message(copy.deepcopy(message))
