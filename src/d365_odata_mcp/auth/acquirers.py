"""
OAuth2 Token Acquirers

Azure AD and ADFS implementations of ITokenAcquirer for D365 client-credentials access.
"""

import asyncio
import re
import time
from typing import Dict, Any, Optional

import httpx
import structlog
from azure.core.exceptions import AzureError
from azure.identity import ClientSecretCredential

from ..config import AuthConfig
from .interface import ITokenAcquirer, Token, AuthError

logger = structlog.get_logger(__name__)

_AADSTS_PATTERN = re.compile(r"AADSTS\d+")


class AzureADTokenAcquirer(ITokenAcquirer):
    """Client-credentials grant against the Azure AD (Entra ID) tenant endpoint"""

    def __init__(
        self,
        config: AuthConfig,
        credential: Optional[ClientSecretCredential] = None,
        timeout: float = 30.0,
    ):
        self.config = config
        self.timeout = timeout
        self.scope = f"{config.resolved_resource}/.default"

        # Use client secret credential for service principal authentication
        self.credential = credential or ClientSecretCredential(
            tenant_id=config.tenant_id,
            client_id=config.client_id,
            client_secret=config.client_secret,
            connection_timeout=timeout,
            read_timeout=timeout,
        )

        logger.info(
            "Azure AD token acquirer initialized",
            tenant_id=config.tenant_id,
            client_id=config.client_id,
            scope=self.scope,
        )

    async def acquire(self) -> Token:
        logger.debug("Requesting new Azure AD token", scope=self.scope)
        try:
            # ClientSecretCredential is blocking; keep the event loop free
            access_token = await asyncio.to_thread(self.credential.get_token, self.scope)
        except AzureError as e:
            message = getattr(e, "message", None) or str(e)
            match = _AADSTS_PATTERN.search(message)
            logger.error(
                "Failed to acquire Azure AD token",
                error_code=match.group(0) if match else None,
                tenant_id=self.config.tenant_id,
                client_id=self.config.client_id,
            )
            raise AuthError(
                f"Failed to acquire Azure AD token: {message}",
                error_code=match.group(0) if match else type(e).__name__,
                error_description=message,
            ) from e

        logger.info("Azure AD token acquired", expires_at=access_token.expires_on)
        return Token(access_token=access_token.token, expires_at=float(access_token.expires_on))

    def get_acquirer_info(self) -> Dict[str, Any]:
        return {
            "type": "azure",
            "client_id": self.config.client_id,
            "token_url": self.config.resolved_token_url,
            "scope": self.scope,
        }


class AdfsTokenAcquirer(ITokenAcquirer):
    """Client-credentials grant against an on-premise ADFS token endpoint"""

    def __init__(
        self,
        config: AuthConfig,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        verify: bool = True,
    ):
        self.config = config
        self.token_url = config.resolved_token_url
        self.resource = config.resolved_resource
        self.timeout = timeout
        self._transport = transport
        self._verify = verify

        logger.info(
            "ADFS token acquirer initialized",
            token_url=self.token_url,
            client_id=config.client_id,
            resource=self.resource,
        )

    def _form(self) -> Dict[str, str]:
        # ADFS takes the audience as `resource`, not an Azure AD `scope`
        return {
            "grant_type": "client_credentials",
            "client_id": self.config.client_id,
            "client_secret": self.config.client_secret,
            "resource": self.resource,
        }

    async def acquire(self) -> Token:
        logger.debug("Requesting new ADFS token", token_url=self.token_url)
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport, verify=self._verify
            ) as client:
                response = await client.post(
                    self.token_url,
                    data=self._form(),
                    headers={"Accept": "application/json"},
                )
        except httpx.HTTPError as e:
            logger.error("ADFS token request failed", token_url=self.token_url, error=str(e))
            raise AuthError(
                f"ADFS token request failed: {e}",
                error_code=type(e).__name__,
            ) from e

        if not response.is_success:
            error_code, description = _parse_oauth_error(response)
            logger.error(
                "ADFS rejected token request",
                status_code=response.status_code,
                error_code=error_code,
                error_description=description,
            )
            raise AuthError(
                f"ADFS token request failed with status {response.status_code}: {description or error_code}",
                error_code=error_code,
                error_description=description,
                status_code=response.status_code,
            )

        try:
            payload = response.json()
            access_token = payload["access_token"]
            expires_in = float(payload.get("expires_in", 3600))
        except (ValueError, KeyError, TypeError) as e:
            raise AuthError(
                f"Failed to parse ADFS token response: {e}",
                error_code="invalid_token_response",
                status_code=response.status_code,
            ) from e

        logger.info("ADFS token acquired", expires_in=expires_in)
        return Token(
            access_token=access_token,
            expires_at=time.time() + expires_in,
            token_type=payload.get("token_type") or "Bearer",
        )

    def get_acquirer_info(self) -> Dict[str, Any]:
        return {
            "type": "adfs",
            "client_id": self.config.client_id,
            "token_url": self.token_url,
            "resource": self.resource,
        }


def _parse_oauth_error(response: httpx.Response) -> tuple[Optional[str], Optional[str]]:
    """Extract the OAuth2 `error` / `error_description` pair from a failed token response"""
    try:
        body = response.json()
    except ValueError:
        return f"http_{response.status_code}", response.text[:500] or None
    if not isinstance(body, dict):
        return f"http_{response.status_code}", str(body)[:500]
    return body.get("error") or f"http_{response.status_code}", body.get("error_description")
