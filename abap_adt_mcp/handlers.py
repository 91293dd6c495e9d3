import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Protocol
from xml.sax.saxutils import escape

from mcp.types import INTERNAL_ERROR, INVALID_PARAMS, METHOD_NOT_FOUND

from .adt import AdtResponse, SapHttpError
from .presenter import PresentedText, present_result, project_error, tool_error
from .transforms import (
    NO_USAGE_REFERENCES,
    normalize_search_query,
    transform_abap_source,
    transform_ancestor_path,
    transform_class_structure_clean,
    transform_data_preview,
    transform_object_meta,
    transform_object_path,
    transform_object_types,
    transform_package_objects,
    transform_search_results,
    transform_table_columns,
    transform_usage_references,
    transform_usage_snippets,
    transform_version_history,
    usage_object_identifiers,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_RESULTS = 100
DEFAULT_ROW_NUMBER = 100
USAGE_REFERENCES_URL = "/sap/bc/adt/repository/informationsystem/usageReferences"
ANNOTATION_DEFINITIONS_ACCEPT = (
    "application/vnd.sap.adt.cds.annotation.definitions.v2+xml, "
    "application/vnd.sap.adt.cds.annotation.definitions.v1+xml"
)


class AdtFetcher(Protocol):
    def fetch(
        self, url, params=None, method: str = "GET", body=None, headers=None, parse: bool = True
    ) -> AdtResponse: ...


def _required(args: Optional[Dict[str, Any]], name: str, message: str) -> str:
    value = (args or {}).get(name)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise tool_error(INVALID_PARAMS, message)
    return str(value)


def _row_number(args: Dict[str, Any]) -> int:
    value = args.get("row_number") or DEFAULT_ROW_NUMBER
    try:
        row_number = int(value)
    except (TypeError, ValueError):
        raise tool_error(INVALID_PARAMS, "row_number must be a positive integer") from None
    if row_number < 1:
        raise tool_error(INVALID_PARAMS, "row_number must be a positive integer")
    return row_number


def usage_snippet_request(identifiers: List[str]) -> str:
    lines = "".join(
        f'<usagereferences:objectIdentifier optional="false">{escape(identifier)}</usagereferences:objectIdentifier>'
        for identifier in identifiers
    )
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        '<usagereferences:usageSnippetRequest xmlns:usagereferences="http://www.sap.com/adt/ris/usageReferences">'
        f"<usagereferences:objectIdentifiers>{lines}</usagereferences:objectIdentifiers>"
        "<usagereferences:affectedObjects/>"
        "</usagereferences:usageSnippetRequest>"
    )


def _source_url(object_url: str) -> str:
    if "/source/main" in object_url:
        return object_url
    return f"{object_url.rstrip('/')}/source/main"


class AdtToolHandler:
    """Runs ADT tools: validates arguments, fetches, transforms.

    Handlers return canonical results and raise ``McpError`` for anything
    the caller should see; :func:`call_tool` turns both into text.
    """

    def __init__(self, client: AdtFetcher, max_results: int = DEFAULT_MAX_RESULTS):
        self.client = client
        self.max_results = max_results
        self.tools: Dict[str, Callable] = {
            "getObjects": self.get_objects,
            "getObjectStructure": self.get_object_structure,
            "getObjectSourceCode": self.get_object_source_code,
            "getObjectFullPath": self.get_object_full_path,
            "getObjectAncestorPath": self.get_object_ancestor_path,
            "getObjectVersionHistory": self.get_object_version_history,
            "getPackageObjects": self.get_package_objects,
            "getClassComponents": self.get_class_components,
            "getServiceBindingDetails": self.get_service_binding_details,
            "getUsageReferences": self.get_usage_references,
            "getUsageReferenceSnippets": self.get_usage_reference_snippets,
            "getDdicElementDetails": self.get_ddic_element_details,
            "getPackagesByName": self.get_packages_by_name,
            "getTableContent": self.get_table_content,
            "runSqlQuery": self.run_sql_query,
            "getAllObjectTypes": self.get_all_object_types,
            "getAllAnnotations": self.get_all_annotations,
            "healthcheck": self.healthcheck,
        }

    async def handle(self, tool_name: str, args: Optional[Dict[str, Any]] = None) -> Any:
        tool = self.tools.get(tool_name)
        if tool is None:
            raise tool_error(METHOD_NOT_FOUND, f"Unknown tool: {tool_name}")
        return await tool(args or {})

    async def _fetch(
        self, action: str, url: str, params=None, method: str = "GET", body=None, headers=None, parse: bool = True
    ) -> AdtResponse:
        try:
            return await asyncio.to_thread(
                self.client.fetch, url, params=params, method=method, body=body, headers=headers, parse=parse
            )
        except SapHttpError as e:
            logger.debug("ADT request failed:\n%s", e)
            raise tool_error(INTERNAL_ERROR, f"{action} failed: {e.summary}") from e

    async def get_objects(self, args):
        query = _required(args, "query", "Search query is required")
        max_results = args.get("maxResults") or self.max_results
        response = await self._fetch(
            "Search",
            "/sap/bc/adt/repository/informationsystem/search",
            params={
                "operation": "quickSearch",
                "query": normalize_search_query(query),
                "maxResults": max_results,
            },
        )
        return transform_search_results(response.data)

    async def get_object_structure(self, args):
        object_url = _required(args, "objectUrl", "Object URL is required")
        response = await self._fetch("Get structure", object_url)
        return transform_object_meta(response.data)

    async def get_object_source_code(self, args):
        object_url = _required(args, "objectUrl", "Object URL is required")
        response = await self._fetch("Get source", _source_url(object_url), parse=False)
        return transform_abap_source(response.data)

    async def get_object_full_path(self, args):
        object_url = _required(args, "objectUrl", "Object URL is required")
        response = await self._fetch("Find path", object_url)
        return transform_object_path(response.data)

    async def get_object_ancestor_path(self, args):
        object_url = _required(args, "objectUrl", "Object URL is required")
        response = await self._fetch(
            "Find path",
            "/sap/bc/adt/repository/nodepath",
            params={"uri": object_url},
            method="POST",
        )
        return transform_ancestor_path(response.data)

    async def get_object_version_history(self, args):
        object_url = _required(args, "objectUrl", "Object URL is required")
        response = await self._fetch(
            "Get versions",
            "/sap/bc/adt/repository/revisions",
            params={"uri": object_url},
        )
        return transform_version_history(response.data)

    async def get_package_objects(self, args):
        package_name = _required(args, "package_name", "Package name is required")
        response = await self._fetch(
            "Get package objects",
            "/sap/bc/adt/repository/nodestructure",
            params={"parent_name": package_name, "parent_type": "DEVC/K"},
            method="POST",
        )
        return transform_package_objects(response.data)

    async def get_class_components(self, args):
        object_url = _required(args, "objectUrl", "Object URL is required")
        response = await self._fetch("Class components", f"{object_url.rstrip('/')}/objectstructure")
        return transform_class_structure_clean(response.data)

    async def get_service_binding_details(self, args):
        object_url = _required(args, "objectUrl", "Object URL is required")
        response = await self._fetch("Binding details", object_url)
        return response.data

    async def get_usage_references(self, args):
        object_url = _required(args, "objectUrl", "Object URL is required")
        response = await self._fetch(
            "Usage references",
            USAGE_REFERENCES_URL,
            params={"uri": object_url},
            method="POST",
        )
        return transform_usage_references(response.data)

    async def get_usage_reference_snippets(self, args):
        object_url = _required(args, "objectUrl", "Object URL is required")
        references = await self._fetch(
            "Usage references",
            USAGE_REFERENCES_URL,
            params={"uri": object_url},
            method="POST",
        )
        identifiers = usage_object_identifiers(references.data)
        if not identifiers:
            return NO_USAGE_REFERENCES
        response = await self._fetch(
            "Usage snippets",
            "/sap/bc/adt/repository/informationsystem/usageSnippets",
            method="POST",
            body=usage_snippet_request(identifiers),
            headers={"Content-Type": "application/*", "Accept": "application/*"},
        )
        return transform_usage_snippets(response.data)

    async def get_ddic_element_details(self, args):
        table_name = _required(args, "table_name", "Table name is required")
        response = await self._fetch(
            "Dictionary details",
            f"/sap/bc/adt/datapreview/ddic/{table_name.lower()}/metadata",
        )
        return transform_table_columns(response.data)

    async def get_packages_by_name(self, args):
        query = _required(args, "query", "Package name pattern is required")
        max_results = args.get("maxResults") or self.max_results
        response = await self._fetch(
            "Package search",
            "/sap/bc/adt/repository/informationsystem/search",
            params={
                "operation": "quickSearch",
                "query": normalize_search_query(query),
                "maxResults": max_results,
                "objectType": "DEVC/K",
            },
        )
        return transform_search_results(response.data)

    async def get_table_content(self, args):
        table_name = _required(args, "table_name", "Table name is required")
        response = await self._fetch(
            "Table content",
            "/sap/bc/adt/datapreview/ddic",
            params={"rowNumber": _row_number(args), "ddicEntityName": table_name.upper()},
            method="POST",
            body=f"SELECT * FROM {table_name.upper()}",
            headers={"Content-Type": "text/plain"},
        )
        return transform_data_preview(response.data)

    async def run_sql_query(self, args):
        sql = _required(args, "sql", "SQL query is required")
        response = await self._fetch(
            "SQL query",
            "/sap/bc/adt/datapreview/freestyle",
            params={"rowNumber": _row_number(args)},
            method="POST",
            body=sql,
            headers={"Content-Type": "text/plain"},
        )
        return transform_data_preview(response.data)

    async def get_all_object_types(self, args):
        response = await self._fetch(
            "Object types",
            "/sap/bc/adt/repository/informationsystem/objecttypes",
            params={"maxItemCount": 999, "name": "*", "data": "usedByProvider"},
        )
        return transform_object_types(response.data)

    async def get_all_annotations(self, args):
        response = await self._fetch(
            "Annotation definitions",
            "/sap/bc/adt/ddic/cds/annotation/definitions",
            headers={"Accept": ANNOTATION_DEFINITIONS_ACCEPT},
            parse=False,
        )
        return transform_abap_source(response.data)

    async def healthcheck(self, args):
        return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}


async def call_tool(handler: AdtToolHandler, tool_name: str, args: Optional[Dict[str, Any]] = None) -> PresentedText:
    """Run a tool and render whatever it returns or raises."""
    try:
        result = await handler.handle(tool_name, args)
    except Exception as exc:
        return project_error(exc)
    return present_result(result)
