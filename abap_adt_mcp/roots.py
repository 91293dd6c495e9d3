"""Artifact root lookup for ADT object responses.

The server tags the payload root by artifact kind, so a class arrives as
``class:abapClass`` and a table as ``table:abapTable``. Candidates are
probed in a fixed order and the first one present wins.
"""

from typing import Any, Dict, NamedTuple, Optional, Tuple

from .xml_tree import attributes_of

ROOT_CANDIDATES: Tuple[Tuple[str, str], ...] = (
    ("class", "class:abapClass"),
    ("object", "adtcore:object"),
    ("program", "program:abapProgram"),
    ("table", "table:abapTable"),
    ("interface", "intf:abapInterface"),
    ("include", "include:abapInclude"),
    ("package", "pak:package"),
)


class ObjectRoot(NamedTuple):
    kind: str
    tag: Optional[str]
    node: Dict[str, Any]

    @property
    def is_unknown(self) -> bool:
        return self.tag is None

    @property
    def attributes(self) -> Dict[str, Any]:
        return attributes_of(self.node)

    @property
    def package_name(self) -> Optional[str]:
        return attributes_of(self.node.get("adtcore:packageRef")).get("adtcore:name") or None


UNKNOWN_ROOT = ObjectRoot(kind="unknown", tag=None, node={})


def resolve_root(data: Any) -> ObjectRoot:
    if not isinstance(data, dict):
        return UNKNOWN_ROOT
    for kind, tag in ROOT_CANDIDATES:
        node = data.get(tag)
        if isinstance(node, dict):
            return ObjectRoot(kind=kind, tag=tag, node=node)
    return UNKNOWN_ROOT
