"""MCP server exposing the OneUp progress operations as tools."""
