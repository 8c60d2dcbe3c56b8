"""Codebase context MCP server.

Synchronizes a project tree to a remote retrieval service as content-addressed
blobs, then answers natural language queries against the synchronized set.
"""
