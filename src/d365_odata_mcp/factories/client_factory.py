"""
D365 Client Factory

Creates the query executor for the configured product.
"""

from typing import Optional

import httpx
import structlog

from ..config import Settings
from ..client import D365QueryExecutor, IQueryExecutor, RetryPolicy, product_shape_for

logger = structlog.get_logger(__name__)


class ClientFactory:
    """Factory for creating D365 query executors"""

    @staticmethod
    def create_retry_policy(settings: Settings) -> RetryPolicy:
        """Build the retry policy from settings"""
        return RetryPolicy(
            max_retries=settings.max_retries,
            base_delay=settings.retry_base_delay,
            max_delay=settings.retry_max_delay,
            jitter=settings.retry_jitter,
            max_retry_after=settings.retry_after_max,
        )

    @staticmethod
    def create(
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> IQueryExecutor:
        """
        Create query executor based on configuration.

        Args:
            settings: Application settings
            transport: Optional httpx transport (tests, proxies)

        Returns:
            Executor bound to the product shape and retry policy
        """
        shape = product_shape_for(settings.product, settings.endpoint, settings.page_size)

        logger.info(
            "Creating D365 query executor",
            product=shape.product.value,
            endpoint=shape.endpoint,
        )
        if settings.insecure_ssl:
            logger.warning("TLS certificate verification disabled", endpoint=shape.endpoint)

        return D365QueryExecutor(
            shape,
            policy=ClientFactory.create_retry_policy(settings),
            timeout=settings.request_timeout,
            transport=transport,
            verify=not settings.insecure_ssl,
        )
