"""Transports for groundstream: the WebSocket streaming server and MCP tools."""
