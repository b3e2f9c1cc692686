"""
Token Acquirer Interface

Defines the contract shared by the OAuth2 client-credentials flavors (Azure AD, ADFS)
and the token value they produce.
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Any, Optional


@dataclass(frozen=True)
class Token:
    """Bearer token with absolute expiry (epoch seconds)"""

    access_token: str = field(repr=False)
    expires_at: float
    token_type: str = "Bearer"

    def is_valid(self, margin: float = 60.0, now: Optional[float] = None) -> bool:
        """True if the token outlives `now` by more than `margin` seconds"""
        current = time.time() if now is None else now
        return self.expires_at - margin > current

    @property
    def authorization_header(self) -> str:
        return f"{self.token_type} {self.access_token}"


class ITokenAcquirer(ABC):
    """Interface for OAuth2 token acquisition flavors"""

    @abstractmethod
    async def acquire(self) -> Token:
        """
        Request a fresh token from the identity provider.

        Returns:
            Newly issued token

        Raises:
            AuthError: If the provider rejects the request or cannot be reached
        """
        pass

    @abstractmethod
    def get_acquirer_info(self) -> Dict[str, Any]:
        """
        Get non-secret information about the acquirer.

        Returns:
            Acquirer metadata (type, token endpoint, audience)
        """
        pass


class AuthError(Exception):
    """Credential, consent or connectivity failure at the identity provider"""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        error_description: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.error_code = error_code
        self.error_description = error_description
        self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": "authentication_failed",
            "message": str(self),
            "error_code": self.error_code,
            "error_description": self.error_description,
            "status_code": self.status_code,
        }
