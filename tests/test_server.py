import pytest

from abap_adt_mcp.handlers import AdtToolHandler
from abap_adt_mcp.server import _host_patterns, build_server


def test_host_patterns():
    assert _host_patterns(["127.0.0.1", "sap-mcp:3000"]) == ["127.0.0.1", "127.0.0.1:*", "sap-mcp:3000"]


@pytest.mark.asyncio
async def test_every_handler_tool_is_registered(settings, fake_adt):
    handler = AdtToolHandler(fake_adt)
    mcp = build_server(settings, handler)

    tools = await mcp.list_tools()

    assert {tool.name for tool in tools} == set(handler.tools)
    get_objects = next(tool for tool in tools if tool.name == "getObjects")
    assert get_objects.inputSchema["required"] == ["query"]


@pytest.mark.asyncio
async def test_sql_tool_schema(settings, fake_adt):
    tools = await build_server(settings, AdtToolHandler(fake_adt)).list_tools()
    run_sql = next(tool for tool in tools if tool.name == "runSqlQuery")
    assert run_sql.inputSchema["required"] == ["sql"]
    assert run_sql.inputSchema["properties"]["row_number"]["default"] == 100
