"""
Service Factory

Creates service instances using client and auth dependencies.
"""

import structlog

from ..auth import TokenProvider
from ..client import IQueryExecutor
from ..services.query import IQueryService, QueryService

logger = structlog.get_logger(__name__)


class ServiceFactory:
    """Factory for creating service instances with proper dependency injection"""

    @staticmethod
    def create_query_service(
        executor: IQueryExecutor,
        token_provider: TokenProvider,
    ) -> IQueryService:
        """
        Create query service.

        Args:
            executor: Configured query executor
            token_provider: Shared token provider

        Returns:
            Configured query service instance
        """
        logger.info("Creating query service")
        return QueryService(executor, token_provider)
