"""
WebDAV request vocabulary: verbs, PROPFIND bodies and request headers
"""

import aiohttp

from webdav_backup.config import get_settings
from webdav_backup.webdav.models import WebDAVConfig

PROPFIND = "PROPFIND"
MKCOL = "MKCOL"
PUT = "PUT"
GET = "GET"
DELETE = "DELETE"

XML_CONTENT_TYPE = "application/xml"
JSON_CONTENT_TYPE = "application/json"

# Existence probe: only the resource type is requested.
PROPFIND_PROBE_BODY = """<?xml version="1.0" encoding="utf-8"?>
<propfind xmlns="DAV:">
  <prop>
    <resourcetype/>
  </prop>
</propfind>"""

PROPFIND_LISTING_BODY = """<?xml version="1.0" encoding="utf-8"?>
<propfind xmlns="DAV:">
  <prop>
    <displayname/>
    <resourcetype/>
    <getcontentlength/>
    <getlastmodified/>
  </prop>
</propfind>"""


def build_headers(
    config: WebDAVConfig,
    content_type: str | None = None,
    depth: int | None = None,
) -> dict[str, str]:
    """Basic-auth headers for every request against the backup server"""
    auth = aiohttp.BasicAuth(
        config.username, config.password.get_secret_value(), encoding="utf-8"
    )
    headers = {
        "Authorization": auth.encode(),
        "User-Agent": get_settings().user_agent,
        "Accept": "*/*",
    }
    if content_type:
        headers["Content-Type"] = content_type
    if depth is not None:
        headers["Depth"] = str(depth)
    return headers
