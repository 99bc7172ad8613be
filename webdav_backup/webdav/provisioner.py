"""
Idempotent creation of remote backup directories
"""

from webdav_backup.utils.logger import mask_credentials
from webdav_backup.utils.mixins import LoggerMixin
from webdav_backup.webdav.exceptions import TransportError
from webdav_backup.webdav.models import WebDAVConfig
from webdav_backup.webdav.paths import normalize_path, split_segments
from webdav_backup.webdav.protocol import (
    MKCOL,
    PROPFIND,
    PROPFIND_PROBE_BODY,
    XML_CONTENT_TYPE,
    build_headers,
)
from webdav_backup.webdav.transport import RequestTransport

# MKCOL on an existing collection
METHOD_NOT_ALLOWED = 405


class DirectoryProvisioner(LoggerMixin):
    """Makes sure a (possibly nested) collection exists on the server"""

    def __init__(self, transport: RequestTransport) -> None:
        self.transport = transport

    async def exists(self, config: WebDAVConfig, dir_path: str) -> bool:
        """Depth-0 PROPFIND; any failure counts as absent."""
        url = normalize_path(config.server_url, dir_path)
        try:
            response = await self.transport.send(
                url,
                PROPFIND,
                build_headers(config, XML_CONTENT_TYPE, depth=0),
                PROPFIND_PROBE_BODY,
            )
        except (TransportError, ValueError) as e:
            self.logger.warning(
                "Directory probe failed", url=mask_credentials(url), error=str(e)
            )
            return False
        return response.ok

    async def create(self, config: WebDAVConfig, dir_path: str) -> bool:
        """MKCOL; an already existing collection (405) counts as created."""
        url = normalize_path(config.server_url, dir_path)
        try:
            response = await self.transport.send(url, MKCOL, build_headers(config))
        except (TransportError, ValueError) as e:
            self.logger.error(
                "Directory creation failed", url=mask_credentials(url), error=str(e)
            )
            return False

        if response.ok or response.status == METHOD_NOT_ALLOWED:
            self.logger.info(
                "Directory ready", path=dir_path, status=response.status
            )
            return True

        self.logger.error(
            "Directory creation rejected",
            path=dir_path,
            status=response.status,
            status_text=response.status_text,
        )
        return False

    async def ensure_exists(self, config: WebDAVConfig, dir_path: str) -> bool:
        """Probe ``dir_path``; if absent, walk from the root creating ancestors.

        Stops at the first segment that cannot be created. Segments created
        before that stay in place; calling again is safe.
        """
        if await self.exists(config, dir_path):
            return True

        current = ""
        for segment in split_segments(dir_path):
            current += "/" + segment
            if await self.exists(config, current):
                continue
            if not await self.create(config, current):
                return False

        return True
