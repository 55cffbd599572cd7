"""Read listings out of the decompressed feed."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterator, Optional

from lxml import etree

logger = logging.getLogger(__name__)

LISTING_TAG = "Listing"


def _local_name(element: etree._Element) -> str:
    return etree.QName(element).localname


def get_xml(path: str | Path) -> Optional[etree._ElementTree]:
    """Parse the whole feed, or return None if it cannot be read."""
    parser = etree.XMLParser(remove_blank_text=True, huge_tree=True)
    try:
        return etree.parse(str(path), parser)
    except (OSError, etree.XMLSyntaxError) as e:
        logger.error("Failed to parse %s: %s", path, e)
        return None


def get_xml_string(path: str | Path) -> str:
    """Return the feed as text, or '' if it is missing or unreadable."""
    path = Path(path)
    if not path.exists():
        return ""
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.error("Failed to read %s: %s", path, e)
        return ""


def iter_listings(path: str | Path) -> Iterator[etree._Element]:
    """Yield each ``Listing`` element without loading the whole feed.

    Elements are cleared after the caller moves on, so copy anything that
    must outlive the iteration (``listing_to_dict`` does).
    """
    context = etree.iterparse(str(path), events=("end",), huge_tree=True)
    for _, element in context:
        if not isinstance(element.tag, str) or _local_name(element) != LISTING_TAG:
            continue
        yield element
        element.clear()
        parent = element.getparent()
        if parent is not None:
            while element.getprevious() is not None:
                del parent[0]


def listing_to_dict(element: Any) -> dict[str, Any]:
    """Convert a single ``Listing`` element to plain Python data.

    Namespaces are dropped. Children sharing a name become a list,
    attributes are kept under ``"@"`` and text next to attributes or
    children under ``"#text"``.
    """
    if not isinstance(element, etree._Element):
        raise TypeError(f"Expected an lxml element, got {type(element).__name__}")
    if _local_name(element) != LISTING_TAG:
        raise ValueError(f"Element <{_local_name(element)}> is not a single {LISTING_TAG}")
    return {LISTING_TAG: _element_value(element)}


def _element_value(element: etree._Element) -> Any:
    children = [child for child in element if isinstance(child.tag, str)]
    text = (element.text or "").strip()

    if not children and not element.attrib:
        return text

    value: dict[str, Any] = {}
    if element.attrib:
        value["@"] = {etree.QName(k).localname: v for k, v in element.attrib.items()}
    for child in children:
        name = _local_name(child)
        child_value = _element_value(child)
        if name not in value:
            value[name] = child_value
        elif isinstance(value[name], list):
            value[name].append(child_value)
        else:
            value[name] = [value[name], child_value]
    if text:
        value["#text"] = text
    return value
