"""
URL and path normalization for WebDAV requests
"""

from urllib.parse import quote


def normalize_path(server_url: str, path: str) -> str:
    """Join a server URL and a directory path into a directory URL.

    One trailing ``/`` is stripped from ``server_url``; ``path`` is made
    rooted and directory-terminated.

    >>> normalize_path("https://dav.example.com/", "bk")
    'https://dav.example.com/bk/'
    """
    base_url = server_url[:-1] if server_url.endswith("/") else server_url
    normalized = path if path.startswith("/") else "/" + path
    if not normalized.endswith("/"):
        normalized += "/"
    return base_url + normalized


def file_url(server_url: str, directory: str, filename: str) -> str:
    """URL of ``filename`` inside ``directory``, the name percent-encoded"""
    return normalize_path(server_url, directory) + quote(filename, safe="")


def split_segments(path: str) -> list[str]:
    """Non-empty ``/``-separated segments of ``path``"""
    return [part for part in path.split("/") if part]
