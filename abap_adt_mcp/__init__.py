"""MCP server exposing SAP ABAP development objects read through ADT."""

__version__ = "0.1.0"
