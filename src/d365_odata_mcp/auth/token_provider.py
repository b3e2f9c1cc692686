"""
Token Provider

Caches the bearer token for D365 access and refreshes it with single-flight
semantics: concurrent callers that find no valid token share one acquisition.
"""

import asyncio
import time
from typing import Callable, Dict, Any, Optional

import structlog

from .interface import AuthError, ITokenAcquirer, Token

logger = structlog.get_logger(__name__)


class TokenProvider:
    """Owns the cached token and its refresh"""

    def __init__(
        self,
        acquirer: ITokenAcquirer,
        expiry_margin: float = 60.0,
        clock: Callable[[], float] = time.time,
    ):
        self.acquirer = acquirer
        self.expiry_margin = expiry_margin
        self._clock = clock
        # Margin applied to the cached token; reduced for tokens shorter-lived than expiry_margin
        self._margin = expiry_margin
        self._token: Optional[Token] = None
        self._inflight: Optional["asyncio.Task[Token]"] = None
        self._lock = asyncio.Lock()
        self.acquisition_count = 0

    async def get_valid_token(self) -> Token:
        """
        Return a token that is valid beyond the expiry margin.

        Raises:
            AuthError: If acquisition fails; every caller waiting on that
                acquisition receives the same error
        """
        async with self._lock:
            token = self._token
            if token is not None and token.is_valid(self._margin, now=self._clock()):
                return token

            if self._inflight is None:
                logger.info("Acquiring new access token", acquirer=type(self.acquirer).__name__)
                self._inflight = asyncio.get_running_loop().create_task(self._acquire())
            else:
                logger.debug("Joining in-flight token acquisition")
            inflight = self._inflight

        # Shielded so one cancelled caller cannot cancel the shared acquisition
        return await asyncio.shield(inflight)

    async def _acquire(self) -> Token:
        try:
            self.acquisition_count += 1
            token = await self.acquirer.acquire()

            lifetime = token.expires_at - self._clock()
            if lifetime <= 0:
                logger.error("Identity provider issued an expired token", expires_at=token.expires_at)
                raise AuthError(
                    "Identity provider issued a token that has already expired",
                    error_code="expired_token",
                )

            margin = self.expiry_margin
            if lifetime <= margin:
                # Short-lived token: margin is half its lifetime
                margin = lifetime / 2
                logger.warning(
                    "Token lifetime shorter than expiry margin, using reduced margin",
                    lifetime_seconds=round(lifetime, 1),
                    expiry_margin=self.expiry_margin,
                    effective_margin=round(margin, 1),
                )

            self._margin = margin
            self._token = token
            return token
        finally:
            self._inflight = None

    async def get_authorization_header(self) -> str:
        """Ready-to-use `Authorization` header value"""
        token = await self.get_valid_token()
        return token.authorization_header

    def invalidate(self) -> None:
        """Drop the cached token; the next call acquires a new one"""
        self._token = None
        logger.info("Token cache cleared")

    def get_provider_info(self) -> Dict[str, Any]:
        info = dict(self.acquirer.get_acquirer_info())
        token = self._token
        info.update({
            "token_cached": token is not None,
            "expires_in_seconds": int(token.expires_at - self._clock()) if token else None,
            "expiry_margin_seconds": self.expiry_margin,
            "effective_margin_seconds": self._margin,
        })
        return info
