"""
Authentication module for D365 OData MCP Server

Handles OAuth2 client-credentials authentication (Azure AD or ADFS) for
Dataverse and Finance & Operations access.
"""

from .interface import ITokenAcquirer, Token, AuthError
from .acquirers import AzureADTokenAcquirer, AdfsTokenAcquirer
from .token_provider import TokenProvider

__all__ = [
    "ITokenAcquirer",
    "Token",
    "AuthError",
    "AzureADTokenAcquirer",
    "AdfsTokenAcquirer",
    "TokenProvider",
]
