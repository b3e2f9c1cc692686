"""
D365 OData MCP Server

A Model Context Protocol server exposing Microsoft Dynamics 365 data
(Dataverse and Finance & Operations) through read-only OData query tools.
"""

__version__ = "0.1.0"

from .main import main

__all__ = ["main"]
