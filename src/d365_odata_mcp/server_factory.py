"""
Server Factory for D365 OData MCP Server

Creates fully configured server instances using dependency injection and factory patterns.
"""

from typing import Optional

import structlog
from fastmcp import FastMCP

from . import __version__
from .config import Settings, get_settings
from .factories import AuthProviderFactory, ClientFactory, ServiceFactory
from .tools.registry import ToolRegistry

logger = structlog.get_logger(__name__)


class ServerFactory:
    """
    Factory for creating fully configured D365 OData MCP server instances.
    """

    @staticmethod
    async def create_configured_server(settings: Optional[Settings] = None) -> FastMCP:
        """
        Create a fully configured and ready-to-run MCP server.

        Credentials are not exercised here; the first tool call acquires the
        token, and a failure there surfaces to that call only.

        Returns:
            FastMCP server with all tools registered
        """
        logger.info("Creating D365 OData MCP Server")

        try:
            mcp = FastMCP(name="D365-OData-MCP-Server", version=__version__)

            settings = settings or get_settings()
            logger.info(
                "Configuration loaded",
                product=settings.product.value,
                auth_type=settings.auth_type.value,
                endpoint=settings.endpoint,
            )

            # 1. Token provider (shared by every tool call)
            token_provider = AuthProviderFactory.create(settings)

            # 2. Query executor for the configured product
            executor = ClientFactory.create(settings)

            # 3. Query service
            query_service = ServiceFactory.create_query_service(executor, token_provider)

            # 4. Tools
            ToolRegistry.register_all_tools(mcp, query_service)

            logger.info(
                "D365 OData MCP Server created successfully",
                total_tools=len(await mcp.get_tools()),
            )
            return mcp

        except Exception as e:
            logger.error("Failed to create MCP server", error=str(e))
            raise


class ServerValidator:
    """
    Utility class for configuration and connectivity validation.
    """

    @staticmethod
    async def validate_configuration() -> bool:
        """Validate configuration, credentials and D365 connectivity"""
        print("🔧 Validating D365 OData MCP Configuration...")

        try:
            settings = get_settings()
            print("✅ Configuration loaded")
            print(f"   - Product: {settings.product.value}")
            print(f"   - Endpoint: {settings.endpoint}")
            print(f"   - Auth Type: {settings.auth_type.value}")
            print(f"   - Max Retries: {settings.max_retries}")
        except Exception as e:
            print(f"❌ Configuration invalid: {e}")
            return False

        token_provider = AuthProviderFactory.create(settings)
        try:
            await token_provider.get_valid_token()
            print("✅ Token acquisition successful")
        except Exception as e:
            print(f"❌ Token acquisition failed: {e}")
            return False

        executor = ClientFactory.create(settings)
        query_service = ServiceFactory.create_query_service(executor, token_provider)
        try:
            result = await query_service.list_entities()
            print(f"✅ Metadata fetch successful ({result['total']:,} entity sets)")
        except Exception as e:
            print(f"❌ Metadata fetch failed: {e}")
            return False

        print("\n🎉 Configuration validation completed successfully!")
        return True
