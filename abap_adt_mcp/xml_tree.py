"""Conversion of ADT XML payloads into plain nested dictionaries.

The tree keeps the server's prefixed tag names (``adtcore:name``), stores
attributes under ``_attributes`` and character data under ``_text``.
Repeated child tags collapse into a list, a single child stays a dict, so
callers should go through :func:`xml_array` whenever a tag may repeat.
"""

from io import BytesIO
from typing import Any, Dict, List, Optional, Union
from xml.etree import ElementTree as et

XML_NAMESPACES = {
    "chkl": "http://www.sap.com/abapxml/checklist",
    "atom": "http://www.w3.org/2005/Atom",
    "adtcore": "http://www.sap.com/adt/core",
    "exc": "http://www.sap.com/abapxml/types/communicationframework",
    "asx": "http://www.sap.com/abapxml",
    "abapsource": "http://www.sap.com/adt/abapsource",
    "dataPreview": "http://www.sap.com/adt/dataPreview",
    "class": "http://www.sap.com/adt/oo/classes",
    "intf": "http://www.sap.com/adt/oo/interfaces",
    "program": "http://www.sap.com/adt/programs/programs",
    "include": "http://www.sap.com/adt/programs/includes",
    "table": "http://www.sap.com/adt/ddic/tables",
    "pak": "http://www.sap.com/adt/packages",
    "projectexplorer": "http://www.sap.com/adt/projectexplorer",
    "usageReferences": "http://www.sap.com/adt/ris/usageReferences",
}

ATTRIBUTES = "_attributes"
TEXT = "_text"

_KNOWN_PREFIXES = {uri: prefix for prefix, uri in XML_NAMESPACES.items()}


def _qualified_name(name: str, prefixes: Dict[str, str]) -> str:
    if not name.startswith("{"):
        return name
    uri, local = name[1:].split("}", 1)
    prefix = prefixes.get(uri) or _KNOWN_PREFIXES.get(uri)
    return f"{prefix}:{local}" if prefix else local


def _element_to_tree(element: et.Element, prefixes: Dict[str, str]) -> Dict[str, Any]:
    node: Dict[str, Any] = {}
    if element.attrib:
        node[ATTRIBUTES] = {
            _qualified_name(key, prefixes): value for key, value in element.attrib.items()
        }
    text = (element.text or "").strip()
    if text:
        node[TEXT] = text
    for child in element:
        key = _qualified_name(child.tag, prefixes)
        value = _element_to_tree(child, prefixes)
        if key not in node:
            node[key] = value
        elif isinstance(node[key], list):
            node[key].append(value)
        else:
            node[key] = [node[key], value]
    return node


def parse_xml_tree(xml: Union[str, bytes]) -> Dict[str, Any]:
    """Parse an XML document into ``{root_tag: node}``.

    Prefixes declared by the document win over :data:`XML_NAMESPACES`.
    Raises ``xml.etree.ElementTree.ParseError`` for malformed input.
    """
    data = xml.encode("utf-8") if isinstance(xml, str) else xml
    prefixes: Dict[str, str] = {}
    root: Optional[et.Element] = None
    for event, item in et.iterparse(BytesIO(data), events=("start-ns", "end")):
        if event == "start-ns":
            prefix, uri = item
            if prefix:
                prefixes.setdefault(uri, prefix)
        else:
            root = item
    if root is None:
        return {}
    return {_qualified_name(root.tag, prefixes): _element_to_tree(root, prefixes)}


def xml_array(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def attributes_of(node: Any) -> Dict[str, Any]:
    if isinstance(node, dict):
        attributes = node.get(ATTRIBUTES)
        if isinstance(attributes, dict):
            return attributes
    return {}


def text_of(node: Any) -> str:
    if node is None:
        return ""
    if isinstance(node, dict):
        return str(node.get(TEXT, ""))
    if isinstance(node, list):
        return text_of(node[0]) if node else ""
    return str(node)
