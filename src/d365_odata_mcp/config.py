"""
Configuration management for D365 OData MCP Server
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional
from urllib.parse import urlsplit

from pydantic import Field, SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(ValueError):
    """Raised when required configuration is missing or invalid"""
    pass


class ProductType(str, Enum):
    """Dynamics 365 product behind the configured endpoint"""

    DATAVERSE = "dataverse"
    FINOPS = "finops"


class AuthType(str, Enum):
    """OAuth2 client-credentials flavor"""

    AZURE = "azure"
    ADFS = "adfs"


_PRODUCT_ALIASES = {
    "dataverse": ProductType.DATAVERSE,
    "finops": ProductType.FINOPS,
    "fno": ProductType.FINOPS,
    "fo": ProductType.FINOPS,
}

_AUTH_TYPE_ALIASES = {
    "azure": AuthType.AZURE,
    "azuread": AuthType.AZURE,
    "azure_ad": AuthType.AZURE,
    "entra": AuthType.AZURE,
    "adfs": AuthType.ADFS,
    "on-premise": AuthType.ADFS,
    "onpremise": AuthType.ADFS,
}


def resource_from_endpoint(endpoint: str) -> str:
    """Derive the OAuth2 resource (scheme + host) from a service root URL"""
    parts = urlsplit(endpoint)
    if parts.scheme and parts.netloc:
        return f"{parts.scheme}://{parts.netloc}"
    return "/".join(endpoint.split("/")[:3])


@dataclass(frozen=True)
class AuthConfig:
    """Immutable authentication and endpoint configuration, resolved once at startup"""

    tenant_id: str
    client_id: str
    client_secret: str = field(repr=False)
    endpoint: str
    product: ProductType
    auth_type: AuthType = AuthType.AZURE
    token_url: Optional[str] = None
    resource: Optional[str] = None

    @property
    def resolved_resource(self) -> str:
        """Audience for token requests: explicit override or endpoint host"""
        return (self.resource or resource_from_endpoint(self.endpoint)).rstrip("/")

    @property
    def resolved_token_url(self) -> str:
        """Token endpoint for the configured auth flavor"""
        if self.auth_type == AuthType.ADFS:
            return self.token_url or f"https://{self.tenant_id}/adfs/oauth2/token"
        return f"https://login.microsoftonline.com/{self.tenant_id}/oauth2/v2.0/token"


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # D365 Authentication (Required)
    tenant_id: str = Field(min_length=1)
    client_id: str = Field(min_length=1)
    client_secret: SecretStr
    endpoint: str = Field(min_length=1)
    product: ProductType

    # Authentication flavor
    auth_type: AuthType = AuthType.AZURE
    token_url: Optional[str] = None
    resource: Optional[str] = None

    # Query pipeline
    max_retries: int = Field(default=3, ge=0)
    retry_base_delay: float = Field(default=1.0, gt=0)
    retry_max_delay: float = Field(default=30.0, gt=0)
    retry_jitter: float = Field(default=0.1, ge=0)
    retry_after_max: float = Field(default=120.0, ge=0)
    request_timeout: float = Field(default=30.0, gt=0)
    page_size: int = Field(default=500, ge=1)
    token_expiry_margin: float = Field(default=60.0, ge=0)
    # Skip TLS certificate verification (self-signed on-premise hosts)
    insecure_ssl: bool = False

    log_level: str = "info"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("product", mode="before")
    @classmethod
    def _normalize_product(cls, value):
        if isinstance(value, str):
            key = value.strip().lower()
            if key not in _PRODUCT_ALIASES:
                raise ValueError(f"Unknown product '{value}'. Use 'dataverse' or 'finops'")
            return _PRODUCT_ALIASES[key]
        return value

    @field_validator("auth_type", mode="before")
    @classmethod
    def _normalize_auth_type(cls, value):
        if isinstance(value, str):
            key = value.strip().lower()
            if key not in _AUTH_TYPE_ALIASES:
                raise ValueError(f"Unknown auth type '{value}'. Use 'azure' or 'adfs'")
            return _AUTH_TYPE_ALIASES[key]
        return value

    @field_validator("endpoint")
    @classmethod
    def _normalize_endpoint(cls, value: str) -> str:
        value = value.strip()
        return value if value.endswith("/") else f"{value}/"

    @field_validator("token_url", "resource", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    def to_auth_config(self) -> AuthConfig:
        """Freeze the authentication-related settings"""
        return AuthConfig(
            tenant_id=self.tenant_id,
            client_id=self.client_id,
            client_secret=self.client_secret.get_secret_value(),
            endpoint=self.endpoint,
            product=self.product,
            auth_type=self.auth_type,
            token_url=self.token_url,
            resource=self.resource,
        )


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get application settings singleton"""
    global _settings
    if _settings is None:
        # Ensure .env is loaded before creating settings
        load_dotenv_if_exists()

        import structlog
        logger = structlog.get_logger(__name__)

        try:
            _settings = Settings()  # type: ignore[call-arg]
        except ValidationError as e:
            # Report field names only, input values may hold the client secret
            fields = sorted({".".join(str(p) for p in err["loc"]) or "settings" for err in e.errors()})
            logger.error("Invalid configuration", fields=fields)
            raise ConfigurationError(
                f"Missing or invalid configuration: {', '.join(f.upper() for f in fields)}. "
                "Check your environment or .env file."
            ) from None

        logger.info(
            "Settings loaded",
            product=_settings.product.value,
            auth_type=_settings.auth_type.value,
            endpoint=_settings.endpoint,
        )
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next get_settings() reloads them"""
    global _settings
    _settings = None


def load_dotenv_if_exists() -> None:
    """Load .env file if it exists"""
    from dotenv import load_dotenv

    env_path = Path(".env")
    if env_path.exists():
        load_dotenv(env_path)
    else:
        # Try to load from parent directories
        current = Path.cwd()
        for parent in [current] + list(current.parents):
            env_path = parent / ".env"
            if env_path.exists():
                load_dotenv(env_path)
                break
