"""
MCP Tools for D365 OData MCP Server

Registry-based tools using dependency injection patterns.
"""

from .registry import ToolRegistry

__all__ = ["ToolRegistry"]
