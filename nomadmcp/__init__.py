"""MCP server and HTTP API client for managing HashiCorp Nomad clusters."""

__version__ = "0.1.4"
__all__ = ["__version__"]