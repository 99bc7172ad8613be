"""
Parsing of PROPFIND multistatus listings
"""

import xml.etree.ElementTree as ET
from urllib.parse import unquote

import structlog

logger = structlog.get_logger(__name__)


def _local_name(tag: object) -> str:
    # "{DAV:}href", "D:href" and "href" all become "href"
    if not isinstance(tag, str):
        return ""
    name = tag.rsplit("}", 1)[-1]
    return name.rsplit(":", 1)[-1].lower()


def _find_child(element: ET.Element, name: str) -> ET.Element | None:
    for child in element.iter():
        if child is not element and _local_name(child.tag) == name:
            return child
    return None


def _is_collection(response: ET.Element) -> bool:
    resource_type = _find_child(response, "resourcetype")
    if resource_type is None:
        return False
    return _find_child(resource_type, "collection") is not None


def _entry_name(response: ET.Element) -> str:
    display_name = _find_child(response, "displayname")
    if display_name is not None and display_name.text and display_name.text.strip():
        return display_name.text.strip()

    href = _find_child(response, "href")
    if href is not None and href.text and href.text.strip():
        return unquote(href.text.strip().split("/")[-1])

    return ""


def parse_listing(xml_text: str) -> list[str]:
    """File names in a multistatus document, collections excluded.

    A document that cannot be parsed yields ``[]``, same as an empty
    directory; the HTTP status is the only way to tell the two apart.
    """
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as e:
        logger.error(
            "Failed to parse WebDAV listing",
            error=str(e),
            content_preview=xml_text[:200],
        )
        return []

    responses = [el for el in root.iter() if _local_name(el.tag) == "response"]
    if not responses:
        logger.warning("No response elements in WebDAV listing")
        return []

    files: list[str] = []
    for response in responses:
        name = _entry_name(response)
        if not name or name.endswith("/"):
            continue
        if _is_collection(response):
            continue
        files.append(name)

    return files


class DirectoryListingParser:
    """Object wrapper around ``parse_listing`` for injection into the engine"""

    def parse(self, xml_text: str) -> list[str]:
        return parse_listing(xml_text)
