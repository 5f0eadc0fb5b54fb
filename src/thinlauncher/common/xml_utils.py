"""Small ElementTree helpers shared by the POM and settings readers."""
from __future__ import annotations

import xml.etree.ElementTree as ET
from typing import List, Optional, Union

from thinlauncher.exceptions import ConfigurationError


def parse_xml(text: Union[str, bytes], source: Optional[str] = None) -> ET.Element:
    """Parse XML and strip namespaces so lookups can use bare tag names.

    Pass bytes for documents read from disk so the XML declaration decides
    the encoding.

    Raises:
        ConfigurationError: If the document is not well-formed.
    """
    try:
        root = ET.fromstring(text)
    except ET.ParseError as exc:
        raise ConfigurationError(f"Malformed XML: {exc}", source) from exc
    for elem in root.iter():
        if isinstance(elem.tag, str) and "}" in elem.tag:
            elem.tag = elem.tag.split("}", 1)[1]
    return root


def text_of(elem: Optional[ET.Element], path: str, default: str = "") -> str:
    """Stripped text of a child element, or ``default`` when absent/empty."""
    if elem is None:
        return default
    node = elem.find(path)
    if node is None or node.text is None or not node.text.strip():
        return default
    return node.text.strip()


def texts_of(elem: Optional[ET.Element], path: str) -> List[str]:
    """Stripped, non-empty texts of all matching children."""
    if elem is None:
        return []
    return [node.text.strip() for node in elem.findall(path) if node.text and node.text.strip()]


def flag_of(elem: Optional[ET.Element], path: str, default: bool) -> bool:
    """Boolean child value; missing or blank elements yield ``default``."""
    value = text_of(elem, path)
    if not value:
        return default
    return value.lower() == "true"
