"""Per-tool transformers from raw ADT responses to canonical shapes.

Every transformer is pure and tolerant: fields it cannot find come back as
empty strings, and empty collections come back as an explicit message so a
blank answer never reaches the client. Fields are read through alias
tuples because the same value arrives under a prefixed XML attribute
(``adtcore:name``) from the REST endpoints and under a plain key (``name``)
from client libraries.
"""

import re
from typing import Any, Dict, Iterator, List, Sequence, Union

from .redaction import redact
from .roots import resolve_root
from .xml_tree import ATTRIBUTES, attributes_of, text_of, xml_array

NO_OBJECTS_FOUND = "No objects found."
PATH_NOT_FOUND = "Path not found"
NO_VERSION_HISTORY = "No version history found."
PACKAGE_EMPTY = "Package is empty."
NO_USAGE_REFERENCES = "No usage references found."
NO_USAGE_SNIPPETS = "No usage snippets found."
NO_OBJECT_TYPES = "No object types found."
NO_ROWS = "No rows returned."
FALLBACK_PACKAGE = "TMP"

SEARCH_FIELD_ALIASES = {
    "name": ("adtcore:name", "name"),
    "type": ("adtcore:type", "type"),
    "description": ("adtcore:description", "description"),
    "uri": ("adtcore:uri", "uri"),
}

METADATA_FIELD_ALIASES = {
    "name": ("adtcore:name",),
    "type": ("adtcore:type",),
    "description": ("adtcore:description",),
    "language": ("adtcore:language",),
    "master_language": ("adtcore:masterLanguage",),
    "master_system": ("adtcore:masterSystem",),
    "responsible": ("adtcore:responsible",),
    "version": ("adtcore:version",),
    "created_at": ("adtcore:createdAt",),
    "created_by": ("adtcore:createdBy",),
    "changed_at": ("adtcore:changedAt",),
    "changed_by": ("adtcore:changedBy",),
    "source_uri": ("abapsource:sourceUri",),
}

INCLUDE_FIELD_ALIASES = {
    "name": ("adtcore:name", "class:includeType"),
    "type": ("class:includeType", "adtcore:type"),
    "source_uri": ("abapsource:sourceUri",),
}

PATH_FIELD_ALIASES = {
    "name": ("adtcore:name", "name"),
    "type": ("adtcore:type", "type"),
}

# Typed clients report revisions with plain keys, the atom feed with tags.
VERSION_FIELD_ALIASES = {
    "version": ("atom:id", "version", "id"),
    "author": ("author",),
    "date": ("atom:updated", "date", "updated"),
    "title": ("atom:title", "title"),
    "uri": ("uri",),
}

PACKAGE_NODE_ALIASES = {
    "name": ("OBJECT_NAME", "name", "ObjectName"),
    "type": ("OBJECT_TYPE", "type", "ObjectType"),
    "description": ("DESCRIPTION", "description"),
    "uri": ("OBJECT_URI", "uri"),
}

COMPONENT_FIELD_ALIASES = {
    "name": ("adtcore:name", "name"),
    "type": ("adtcore:type", "type"),
    "description": ("adtcore:description", "description"),
    "visibility": ("abapsource:visibility", "visibility"),
    "level": ("clif:level", "level"),
}

LINK_FIELD_ALIASES = {
    "href": ("href",),
    "rel": ("rel",),
    "type": ("type",),
    "title": ("title",),
}

COLUMN_FIELD_ALIASES = {
    "name": ("dataPreview:name", "dataPreview:columnName", "name", "columnName", "fieldName"),
    "type": ("dataPreview:colType", "dataPreview:type", "colType", "type"),
    "description": ("dataPreview:description", "description"),
}

OBJECT_TYPE_ALIASES = {
    "name": ("name", "adtcore:name", "opr:name"),
    "description": ("description", "adtcore:description", "opr:description"),
}

METHOD_TYPE_SUFFIXES = ("/OM", "/IO")
ATTRIBUTE_TYPE_SUFFIXES = ("/OA", "/IA")


def fields_of(node: Any) -> Dict[str, Any]:
    """Plain keys of a node merged with its XML attribute bag."""
    if not isinstance(node, dict):
        return {}
    fields = {key: value for key, value in node.items() if key != ATTRIBUTES}
    fields.update(attributes_of(node))
    return fields


def pick(fields: Dict[str, Any], aliases: Sequence[str], default: str = "") -> str:
    for alias in aliases:
        value = fields.get(alias)
        if isinstance(value, (dict, list)):
            value = text_of(value)
        if value is not None and value != "":
            return str(value)
    return default


def pick_all(node: Any, aliases: Dict[str, Sequence[str]]) -> Dict[str, str]:
    fields = fields_of(node)
    return {name: pick(fields, field_aliases) for name, field_aliases in aliases.items()}


def _dig(data: Any, *path: Sequence[str]) -> Any:
    """Follow ``path`` through nested dicts; each step lists accepted tags."""
    node = data
    for tags in path:
        if not isinstance(node, dict):
            return None
        node = next((node[tag] for tag in tags if tag in node), None)
    return node


def normalize_search_query(query: str) -> str:
    """Treat the search input as a glob: ``.*`` becomes ``*``."""
    return re.sub(r"\.\*", "*", query)


def transform_search_results(data: Any) -> Union[str, List[Dict[str, str]]]:
    if isinstance(data, dict):
        hits = _dig(
            data,
            ("adtcore:objectReferences", "objectReferences"),
            ("adtcore:objectReference", "objectReference"),
        )
        if hits is None:
            hits = data.get("adtcore:objectReference")
    else:
        hits = data
    results = [pick_all(hit, SEARCH_FIELD_ALIASES) for hit in xml_array(hits) if isinstance(hit, dict)]
    if not results:
        return NO_OBJECTS_FOUND
    return results


def transform_object_meta(data: Any) -> Dict[str, Any]:
    root = resolve_root(data)
    attributes = root.attributes
    meta: Dict[str, Any] = {
        name: pick(attributes, aliases) for name, aliases in METADATA_FIELD_ALIASES.items()
    }
    meta["kind"] = root.kind
    meta["package"] = root.package_name or ""
    includes = [
        pick_all(include, INCLUDE_FIELD_ALIASES)
        for include in xml_array(root.node.get("class:include"))
    ]
    if includes:
        meta["includes"] = includes
    return meta


def transform_abap_source(data: Any) -> str:
    if isinstance(data, bytes):
        data = data.decode("utf-8", errors="replace")
    if not isinstance(data, str):
        return ""
    return data.strip()


def transform_object_path(data: Any) -> str:
    """Single-level path ``<package> > <object>``.

    Only the direct package is named; the full chain of super packages is
    produced by :func:`transform_ancestor_path` from the node path service.
    """
    root = resolve_root(data)
    name = pick(root.attributes, ("adtcore:name",))
    return f"{root.package_name or FALLBACK_PACKAGE} > {name}"


def format_ancestor_path(ancestors: Sequence[Any]) -> str:
    segments = []
    for ancestor in ancestors:
        fields = pick_all(ancestor, PATH_FIELD_ALIASES)
        segments.append(f"{fields['name']} ({fields['type']})")
    if not segments:
        return PATH_NOT_FOUND
    return " > ".join(segments)


def transform_ancestor_path(data: Any) -> str:
    if isinstance(data, dict):
        ancestors = _dig(
            data,
            ("projectexplorer:nodepath", "nodepath"),
            ("projectexplorer:objectLinkReferences", "objectLinkReferences"),
            ("projectexplorer:objectLinkReference", "objectLinkReference"),
        )
    else:
        ancestors = data
    return format_ancestor_path([a for a in xml_array(ancestors) if isinstance(a, dict)])


def _revision(entry: Any) -> Dict[str, str]:
    revision = pick_all(entry, VERSION_FIELD_ALIASES)
    if not revision["author"]:
        revision["author"] = text_of(_dig(entry, ("atom:author",), ("atom:name",)))
    if not revision["uri"]:
        revision["uri"] = attributes_of(_dig(entry, ("atom:content",))).get("src", "")
    version = revision["version"] or revision["title"]
    return {
        "name": version,
        "type": "revision",
        "description": f"{revision['author']} {revision['date']}".strip(),
        "version": version,
        "author": revision["author"],
        "date": revision["date"],
        "uri": revision["uri"],
    }


def transform_version_history(data: Any) -> Union[str, List[Dict[str, str]]]:
    if isinstance(data, dict):
        entries = _dig(data, ("atom:feed", "feed"), ("atom:entry", "entry"))
        if entries is None:
            entries = data.get("revisions")
    else:
        entries = data
    revisions = [_revision(entry) for entry in xml_array(entries) if isinstance(entry, dict)]
    if not revisions:
        return NO_VERSION_HISTORY
    return revisions


def transform_package_objects(data: Any) -> Union[str, List[Dict[str, str]]]:
    if isinstance(data, dict):
        nodes = data.get("nodes")
        if nodes is None:
            nodes = _dig(
                data,
                ("asx:abap",),
                ("asx:values",),
                ("DATA",),
                ("TREE_CONTENT",),
                ("SEU_ADT_REPOSITORY_OBJ_NODE",),
            )
    else:
        nodes = data
    objects = [pick_all(node, PACKAGE_NODE_ALIASES) for node in xml_array(nodes) if isinstance(node, dict)]
    if not objects:
        return PACKAGE_EMPTY
    return objects


def transform_usage_references(data: Any) -> Union[str, List[Dict[str, str]]]:
    if isinstance(data, dict):
        referenced = _dig(
            data,
            ("usageReferences:usageReferenceResult",),
            ("usageReferences:referencedObjects",),
            ("usageReferences:referencedObject",),
        )
    else:
        referenced = data
    references = []
    for item in xml_array(referenced):
        if not isinstance(item, dict):
            continue
        reference = pick_all(item.get("usageReferences:adtObject", item), SEARCH_FIELD_ALIASES)
        if not reference["uri"]:
            reference["uri"] = pick(fields_of(item), ("uri",))
        references.append(reference)
    if not references:
        return NO_USAGE_REFERENCES
    return references


def _find_all(node: Any, tag: str) -> Iterator[Any]:
    if isinstance(node, dict):
        for key, value in node.items():
            if key == tag:
                yield from xml_array(value)
            elif key != ATTRIBUTES:
                yield from _find_all(value, tag)
    elif isinstance(node, list):
        for item in node:
            yield from _find_all(item, tag)


def transform_table_columns(data: Any) -> List[Dict[str, str]]:
    items = data if isinstance(data, list) else _find_all(data, "dataPreview:metadata")
    columns = []
    for item in items:
        column = pick_all(item, COLUMN_FIELD_ALIASES)
        if not column["name"].strip():
            continue
        column["name"] = column["name"].strip().upper()
        column["type"] = column["type"].strip().upper()
        columns.append(column)
    return columns


def _link(node: Any) -> Dict[str, str]:
    return pick_all(node, LINK_FIELD_ALIASES)


def _component(node: Any) -> Dict[str, Any]:
    component: Dict[str, Any] = pick_all(node, COMPONENT_FIELD_ALIASES)
    links = _dig(node, ("atom:link", "links"))
    children = _dig(node, ("abapsource:objectStructureElement", "components"))
    component["links"] = [_link(link) for link in xml_array(links) if isinstance(link, dict)]
    component["components"] = [_component(child) for child in xml_array(children) if isinstance(child, dict)]
    return component


def transform_class_structure(data: Any) -> Dict[str, Any]:
    """Nested component tree of a class, links included."""
    root = data
    if isinstance(data, dict):
        root = _dig(data, ("abapsource:objectStructureElement", "objectStructureElement"))
        if root is None:
            root = data
    if isinstance(root, list):
        root = root[0] if root else {}
    return _component(root)


def _flatten_components(components: List[Dict[str, Any]]) -> Iterator[Dict[str, Any]]:
    for component in components:
        yield component
        yield from _flatten_components(component.get("components", []))


def _component_group(component_type: str) -> str:
    if component_type.endswith(METHOD_TYPE_SUFFIXES):
        return "methods"
    if component_type.endswith(ATTRIBUTE_TYPE_SUFFIXES):
        return "attributes"
    return "other"


def transform_class_structure_clean(data: Any) -> Dict[str, Any]:
    """Methods and attributes of a class with ADT boilerplate removed."""
    structure = transform_class_structure(data)
    cleaned: Dict[str, Any] = {
        "name": structure["name"],
        "type": structure["type"],
        "description": structure["description"],
        "methods": [],
        "attributes": [],
        "other": [],
    }
    for component in _flatten_components(structure["components"]):
        entry = redact({key: value for key, value in component.items() if key != "components"})
        entry = {key: value for key, value in entry.items() if value not in ("", [], {})}
        cleaned[_component_group(component["type"])].append(entry)
    return cleaned


def _find_local(node: Any, local_name: str) -> Iterator[Any]:
    """Like :func:`_find_all` but ignores the prefix the document chose."""
    if isinstance(node, dict):
        for key, value in node.items():
            if key == ATTRIBUTES:
                continue
            if key == local_name or key.endswith(f":{local_name}"):
                yield from xml_array(value)
            else:
                yield from _find_local(value, local_name)
    elif isinstance(node, list):
        for item in node:
            yield from _find_local(item, local_name)


def transform_object_types(data: Any) -> Union[str, List[Dict[str, str]]]:
    items = data if isinstance(data, list) else _find_local(data, "objectType")
    object_types = []
    for item in items:
        fields = pick_all(item, OBJECT_TYPE_ALIASES)
        if not fields["name"]:
            continue
        object_types.append({"name": fields["name"], "type": "object type", "description": fields["description"]})
    if not object_types:
        return NO_OBJECT_TYPES
    return object_types


def usage_object_identifiers(data: Any) -> List[str]:
    """Identifiers of the result objects of a usage reference search, in order."""
    identifiers = []
    for item in _find_local(data, "referencedObject"):
        fields = fields_of(item)
        if pick(fields, ("isResult",), "true") != "true":
            continue
        identifier = pick(fields, ("usageReferences:objectIdentifier", "objectIdentifier"))
        if identifier and identifier not in identifiers:
            identifiers.append(identifier)
    return identifiers


def transform_usage_snippets(data: Any) -> Union[str, List[Dict[str, str]]]:
    snippets = []
    for snippet_object in _find_local(data, "codeSnippetObject"):
        identifier = text_of(next(_find_local(snippet_object, "objectIdentifier"), None))
        for snippet in _find_local(snippet_object, "codeSnippet"):
            content = text_of(next(_find_local(snippet, "content"), None))
            snippets.append(
                {
                    "name": identifier,
                    "type": "snippet",
                    "description": " ".join(content.split()),
                    "uri": pick(fields_of(snippet), ("uri",)),
                }
            )
    if not snippets:
        return NO_USAGE_SNIPPETS
    return snippets


def transform_data_preview(data: Any) -> Union[str, Dict[str, Any]]:
    """Column-wise data preview turned into rows keyed by column name."""
    if isinstance(data, str):
        return data.strip() or NO_ROWS
    names: List[str] = []
    values: List[List[str]] = []
    for column in _find_local(data, "columns"):
        metadata = next(_find_local(column, "metadata"), None)
        name = pick(attributes_of(metadata), ("dataPreview:name", "name"))
        if not name:
            continue
        names.append(name)
        values.append([text_of(cell) for cell in _find_local(column, "data")])
    if not names:
        return NO_ROWS
    row_count = max(len(column_values) for column_values in values)
    rows = [
        {name: column_values[i] if i < len(column_values) else "" for name, column_values in zip(names, values)}
        for i in range(row_count)
    ]
    total = text_of(next(_find_local(data, "totalRows"), None)).strip()
    return {"columns": names, "rows": rows, "total_rows": int(total) if total.isdigit() else row_count}
