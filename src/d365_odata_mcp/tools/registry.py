"""
Tool Registry for D365 OData MCP Server

Centralized tool registration with consistent patterns and usage guidance.
"""

import json
from typing import Optional
from fastmcp import FastMCP
from fastmcp.exceptions import FastMCPError
import structlog

from ..auth import AuthError
from ..client import QueryError
from ..services.query import IQueryService

logger = structlog.get_logger(__name__)


class ToolRegistry:
    """
    Centralized tool registration with consistent patterns and usage guidance.
    """

    @staticmethod
    def register_all_tools(mcp: FastMCP, query_service: IQueryService) -> None:
        """Register all MCP tools"""
        logger.info("Registering MCP tools")

        ToolRegistry._register_query_tools(mcp, query_service)
        ToolRegistry._register_discovery_tools(mcp, query_service)

        logger.info("All MCP tools registered successfully")

    @staticmethod
    def _register_query_tools(mcp: FastMCP, query_service: IQueryService) -> None:
        """Register read-only data query tools"""

        @mcp.tool
        async def query_entity(
            entity: str,
            filter: Optional[str] = None,
            select: Optional[str] = None,
            orderby: Optional[str] = None,
            top: int = 50,
            skip: Optional[int] = None,
            expand: Optional[str] = None,
            cross_company: bool = False,
            count: bool = False,
        ) -> str:
            """
            Query a Dynamics 365 entity set with OData parameters.

            Works against Dataverse (e.g. 'accounts', 'contacts') and
            Finance & Operations (e.g. 'CustomersV3', 'SalesOrderHeadersV2')
            depending on the configured endpoint. Use list_entities first
            if you are unsure of the exact entity set name.

            Paging is handled for you: results follow server next links until
            `top` records are collected. `top` is clamped to 1..1000.

            Args:
                entity: Exact entity set name (case-sensitive)
                filter: OData filter (e.g. "statecode eq 0", "CustomerGroupId eq '10'")
                select: Comma-separated fields (e.g. "name,accountnumber") - improves performance
                orderby: Sort expression (e.g. "createdon desc")
                top: Maximum records to return (default 50, max 1000)
                skip: Records to skip
                expand: Comma-separated navigation properties to expand
                cross_company: Finance & Operations only - query all legal entities
                count: Include the total matching count

            Returns:
                JSON with entity, count, records and total_count (if requested)

            Examples:
                query_entity("accounts", select="name,accountnumber", top=10)
                query_entity("CustomersV3", filter="CustomerGroupId eq '10'", cross_company=true)
                query_entity("contacts", orderby="createdon desc", count=true, top=5)
            """
            try:
                result = await query_service.query_entity(
                    entity,
                    filter=filter,
                    select=select,
                    orderby=orderby,
                    top=top,
                    skip=skip,
                    expand=expand,
                    cross_company=cross_company,
                    count=count,
                )
                return json.dumps(result, indent=2, default=str)
            except (AuthError, QueryError, ValueError) as e:
                logger.error("Entity query failed", entity=entity, error=str(e))
                raise FastMCPError(f"Failed to query {entity}: {e}")

        @mcp.tool
        async def get_record(
            entity: str,
            key: str,
            select: Optional[str] = None,
            expand: Optional[str] = None,
            cross_company: bool = False,
        ) -> str:
            """
            Get a single record by its key.

            Args:
                entity: Exact entity set name
                key: Key predicate content without parentheses.
                     Dataverse: the record GUID (e.g. "00000000-0000-0000-0000-000000000001").
                     Finance & Operations: composite key (e.g. "dataAreaId='usmf',CustomerAccount='US-001'")
                select: Comma-separated fields to return
                expand: Comma-separated navigation properties to expand
                cross_company: Finance & Operations only - look up across legal entities

            Returns:
                JSON with entity, key and record
            """
            try:
                result = await query_service.get_record(
                    entity, key, select=select, expand=expand, cross_company=cross_company
                )
                return json.dumps(result, indent=2, default=str)
            except (AuthError, QueryError, ValueError) as e:
                logger.error("Get record failed", entity=entity, error=str(e))
                raise FastMCPError(f"Failed to get {entity}({key}): {e}")

    @staticmethod
    def _register_discovery_tools(mcp: FastMCP, query_service: IQueryService) -> None:
        """Register environment and metadata discovery tools"""

        @mcp.tool
        async def list_entities(pattern: Optional[str] = None) -> str:
            """
            List available entity sets from the service $metadata.

            The full F&O metadata document is large; pass a pattern to narrow results.

            Args:
                pattern: Case-insensitive substring (e.g. "Customer", "account")

            Returns:
                JSON with entity set names, their entity types and total
            """
            try:
                result = await query_service.list_entities(pattern)
                return json.dumps(result, indent=2)
            except (AuthError, QueryError) as e:
                logger.error("List entities failed", error=str(e))
                raise FastMCPError(f"Failed to list entities: {e}")

        @mcp.tool
        async def get_environment_info() -> str:
            """
            Describe the connected Dynamics 365 environment.

            Returns product (dataverse or finops), endpoint, auth flavor and
            retry settings. Never includes credentials.
            """
            return json.dumps(query_service.get_environment_info(), indent=2)
