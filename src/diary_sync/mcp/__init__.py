"""MCP server exposing the diary service over stdio."""
