import logging
import sys
from typing import List

from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.exceptions import ToolError
from mcp.server.transport_security import TransportSecuritySettings

from .adt import Adt
from .config import AdtSettings, load_settings
from .handlers import DEFAULT_MAX_RESULTS, DEFAULT_ROW_NUMBER, AdtToolHandler, call_tool

logger = logging.getLogger(__name__)

SERVER_NAME = "abap-adt-mcp"


def _host_patterns(hosts: List[str]) -> List[str]:
    # Host headers carry the port, so bare host names also match any port.
    patterns = []
    for host in hosts:
        patterns.append(host)
        if ":" not in host:
            patterns.append(f"{host}:*")
    return patterns


def build_server(settings: AdtSettings, handler: AdtToolHandler) -> FastMCP:
    """Create the MCP server and register every ADT tool on it."""
    mcp = FastMCP(
        SERVER_NAME,
        host=settings.host,
        port=settings.port,
        transport_security=TransportSecuritySettings(
            enable_dns_rebinding_protection=True,
            allowed_hosts=_host_patterns(settings.allowed_hosts),
            allowed_origins=settings.allowed_origins,
        ),
    )

    async def run(tool_name: str, **args) -> str:
        result = await call_tool(handler, tool_name, args)
        if result.is_error:
            raise ToolError(result.text)
        return result.text

    @mcp.tool(name="getObjects")
    async def get_objects(query: str, maxResults: int = DEFAULT_MAX_RESULTS) -> str:
        """Get objects by regex query. Returns objectURL

        Args:
            query: Search query string, e.g. ZCL_* or ZCL_.*
            maxResults: Maximum number of hits
        """
        return await run("getObjects", query=query, maxResults=maxResults)

    @mcp.tool(name="getObjectStructure")
    async def get_object_structure(objectUrl: str) -> str:
        """Retrieves technical metadata and structural components of an ABAP object.

        Returns core attributes, the package and URIs of individual source
        segments (definitions, implementations, test classes).

        Args:
            objectUrl: URL of the object
        """
        return await run("getObjectStructure", objectUrl=objectUrl)

    @mcp.tool(name="getObjectSourceCode")
    async def get_object_source_code(objectUrl: str) -> str:
        """Retrieves source code for a ABAP object.

        Args:
            objectUrl: URL of the object, e.g. /sap/bc/adt/programs/programs/ztestsmd
        """
        return await run("getObjectSourceCode", objectUrl=objectUrl)

    @mcp.tool(name="getObjectFullPath")
    async def get_object_full_path(objectUrl: str) -> str:
        """Retrieves the package and name of an ABAP object as "PACKAGE > OBJECT".

        Args:
            objectUrl: URL of the object to find path for
        """
        return await run("getObjectFullPath", objectUrl=objectUrl)

    @mcp.tool(name="getObjectAncestorPath")
    async def get_object_ancestor_path(objectUrl: str) -> str:
        """Retrieves the full hierarchical path of an ABAP object, from its root
        package down to the object itself.

        Args:
            objectUrl: URL of the object to find path for
        """
        return await run("getObjectAncestorPath", objectUrl=objectUrl)

    @mcp.tool(name="getObjectVersionHistory")
    async def get_object_version_history(objectUrl: str) -> str:
        """Retrieves version history for a specific object or one of its includes.

        Args:
            objectUrl: The URL of the object.
        """
        return await run("getObjectVersionHistory", objectUrl=objectUrl)

    @mcp.tool(name="getPackageObjects")
    async def get_package_objects(package_name: str) -> str:
        """Retrieves list of objects inside of package

        Args:
            package_name: Name of the package, e.g. $TMP
        """
        return await run("getPackageObjects", package_name=package_name)

    @mcp.tool(name="getClassComponents")
    async def get_class_components(objectUrl: str) -> str:
        """List methods and attributes of class

        Args:
            objectUrl: The URL of the class
        """
        return await run("getClassComponents", objectUrl=objectUrl)

    @mcp.tool(name="getServiceBindingDetails")
    async def get_service_binding_details(objectUrl: str) -> str:
        """Retrieves details of a service binding

        Args:
            objectUrl: The URL of the service binding
        """
        return await run("getServiceBindingDetails", objectUrl=objectUrl)

    @mcp.tool(name="getUsageReferences")
    async def get_usage_references(objectUrl: str) -> str:
        """Lists the objects that use the given object (where-used list).

        Args:
            objectUrl: The URL of the object
        """
        return await run("getUsageReferences", objectUrl=objectUrl)

    @mcp.tool(name="getUsageReferenceSnippets")
    async def get_usage_reference_snippets(objectUrl: str) -> str:
        """Shows the code lines where the given object is used.

        Args:
            objectUrl: The URL of the object
        """
        return await run("getUsageReferenceSnippets", objectUrl=objectUrl)

    @mcp.tool(name="getDdicElementDetails")
    async def get_ddic_element_details(table_name: str) -> str:
        """Gets columns of a SAP transparent table including their types.

        Args:
            table_name: Name of the table, e.g. 'MARA'
        """
        return await run("getDdicElementDetails", table_name=table_name)

    @mcp.tool(name="getPackagesByName")
    async def get_packages_by_name(query: str, maxResults: int = DEFAULT_MAX_RESULTS) -> str:
        """Search packages by name pattern.

        Args:
            query: Package name pattern, e.g. Z_SD*
            maxResults: Maximum number of hits
        """
        return await run("getPackagesByName", query=query, maxResults=maxResults)

    @mcp.tool(name="getTableContent")
    async def get_table_content(table_name: str, row_number: int = DEFAULT_ROW_NUMBER) -> str:
        """Read rows of a table or CDS view through the ADT data preview.

        Args:
            table_name: Name of the table or view, e.g. 'T000'
            row_number: Maximum number of rows to return.
        """
        return await run("getTableContent", table_name=table_name, row_number=row_number)

    @mcp.tool(name="runSqlQuery")
    async def run_sql_query(sql: str, row_number: int = DEFAULT_ROW_NUMBER) -> str:
        """Run SQL Query - Execute freestyle SQL query

        Sends the SQL to ADT endpoint /sap/bc/adt/datapreview/freestyle.

        Args:
            sql: SQL statement to execute (e.g., SELECT * FROM MARA WHERE MATNR LIKE 'T%').
            row_number: Maximum number of rows to return.
        """
        return await run("runSqlQuery", sql=sql, row_number=row_number)

    @mcp.tool(name="getAllObjectTypes")
    async def get_all_object_types() -> str:
        """Lists the repository object types known to the system, e.g. CLAS/OC"""
        return await run("getAllObjectTypes")

    @mcp.tool(name="getAllAnnotations")
    async def get_all_annotations() -> str:
        """Retrieves the CDS annotation definitions of the system"""
        return await run("getAllAnnotations")

    @mcp.tool(name="healthcheck")
    async def healthcheck() -> str:
        """Check server health and connectivity"""
        return await run("healthcheck")

    return mcp


def main() -> None:
    settings = load_settings()
    logging.basicConfig(
        level=settings.log_level,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    adt = Adt(settings)
    adt.login()
    logger.info("Logged in to %s", settings.sap_host)

    mcp = build_server(settings, AdtToolHandler(adt))
    logger.info("MCP server listening on http://%s:%d/mcp", settings.host, settings.port)
    mcp.run(transport="streamable-http")


if __name__ == "__main__":
    main()
