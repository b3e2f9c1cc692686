"""
Authentication Provider Factory

Creates the token provider with the acquirer matching the configured auth flavor.
"""

from typing import Optional

import httpx
import structlog

from ..config import AuthConfig, AuthType, Settings
from ..auth import ITokenAcquirer, TokenProvider, AzureADTokenAcquirer, AdfsTokenAcquirer

logger = structlog.get_logger(__name__)


class AuthProviderFactory:
    """Factory for creating token providers"""

    @staticmethod
    def create_acquirer(
        config: AuthConfig,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        verify: bool = True,
    ) -> ITokenAcquirer:
        """
        Create the token acquirer for the configured auth type.

        Args:
            config: Frozen authentication configuration
            timeout: Token request timeout in seconds
            transport: Optional httpx transport (ADFS)
            verify: Verify TLS certificates (ADFS)

        Returns:
            Acquirer for Azure AD or ADFS

        Raises:
            ValueError: If auth type is not supported
        """
        auth_type = AuthType(config.auth_type)

        logger.info("Creating token acquirer", auth_type=auth_type.value)

        if auth_type == AuthType.AZURE:
            return AzureADTokenAcquirer(config, timeout=timeout)
        elif auth_type == AuthType.ADFS:
            return AdfsTokenAcquirer(config, timeout=timeout, transport=transport, verify=verify)
        else:
            raise ValueError(f"Unsupported auth type: {auth_type}")

    @staticmethod
    def create(settings: Settings) -> TokenProvider:
        """
        Create token provider based on configuration.

        Args:
            settings: Application settings

        Returns:
            Token provider wrapping the configured acquirer
        """
        acquirer = AuthProviderFactory.create_acquirer(
            settings.to_auth_config(),
            timeout=settings.request_timeout,
            verify=not settings.insecure_ssl,
        )
        return TokenProvider(acquirer, expiry_margin=settings.token_expiry_margin)

    @staticmethod
    def get_available_providers() -> list[str]:
        """Get list of available auth types"""
        return [a.value for a in AuthType]
