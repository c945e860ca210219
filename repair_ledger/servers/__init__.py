"""
Servers Module
==============
HTTP API and MCP tool server built around the ledger computations.
"""
