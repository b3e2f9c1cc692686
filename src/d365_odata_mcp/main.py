"""
D365 OData MCP Server

Main entry point for the Dynamics 365 (Dataverse / Finance & Operations) MCP server.
"""

import argparse
import asyncio
import logging
import os
import sys
from typing import Optional

import structlog

from . import __version__
from .config import ConfigurationError, load_dotenv_if_exists
from .server_factory import ServerFactory, ServerValidator

logger = structlog.get_logger(__name__)


def configure_logging(log_level: str = "info") -> None:
    """Route structlog through stdlib logging on stderr; stdout carries the MCP stdio channel"""
    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(stream=sys.stderr, level=level, format="%(message)s", force=True)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def main() -> Optional[int]:
    """Main entry point with command line argument parsing"""
    # Load environment variables
    load_dotenv_if_exists()

    parser = argparse.ArgumentParser(
        description="MCP server for Microsoft Dynamics 365 OData APIs",
        epilog=(
            "Environment variables: TENANT_ID, CLIENT_ID, CLIENT_SECRET, ENDPOINT, PRODUCT "
            "(required); AUTH_TYPE, TOKEN_URL, RESOURCE (optional)"
        ),
    )
    parser.add_argument(
        "--transport",
        choices=["stdio"],
        default="stdio",
        help="Transport mode (currently only stdio supported)",
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("LOG_LEVEL", "info").lower(),
        choices=["debug", "info", "warning", "error"],
        help="Log level (default: LOG_LEVEL or info)",
    )
    parser.add_argument(
        "--validate-config", action="store_true", help="Validate configuration and connectivity, then exit"
    )
    parser.add_argument("--version", action="version", version=f"d365-odata-mcp {__version__}")

    args = parser.parse_args()

    configure_logging(args.log_level)

    if args.validate_config:
        return 0 if asyncio.run(ServerValidator.validate_configuration()) else 1

    # Create fully configured server
    try:
        mcp = asyncio.run(ServerFactory.create_configured_server())
    except ConfigurationError as e:
        logger.error("Invalid configuration", error=str(e))
        return 2
    except Exception as e:
        logger.error("Failed to initialize server", error=str(e))
        return 1

    logger.info("Starting D365 OData MCP Server", transport=args.transport)
    mcp.run(transport="stdio")
    return 0


if __name__ == "__main__":
    exit_code = main()
    sys.exit(exit_code or 0)
