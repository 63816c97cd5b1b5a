"""Secret store, MCP server registry, container runtime control, plugin helpers and an MCP client for klaus agent containers."""

__version__ = "0.1.0"