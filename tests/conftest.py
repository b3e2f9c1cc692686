"""
Pytest configuration and fixtures for D365 OData MCP tests
"""

import asyncio
import time
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest

from d365_odata_mcp.auth import ITokenAcquirer, Token, TokenProvider
from d365_odata_mcp.client import D365QueryExecutor, RetryPolicy, product_shape_for
from d365_odata_mcp.config import AuthConfig, AuthType, ProductType, Settings

FNO_ENDPOINT = "https://contoso.operations.dynamics.com/data/"
DATAVERSE_ENDPOINT = "https://contoso.crm.dynamics.com/api/data/v9.2/"
TEST_SECRET = "test-client-secret-value"


class FakeClock:
    """Manually advanced replacement for time.time"""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeAcquirer(ITokenAcquirer):
    """Counts acquisitions; optionally blocks on a gate or fails"""

    def __init__(
        self,
        lifetime: float = 3600.0,
        error: Optional[Exception] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.calls = 0
        self.clock = clock
        self.lifetime = lifetime
        self.error = error
        self.gate: Optional[asyncio.Event] = None

    async def acquire(self) -> Token:
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return Token(access_token=f"tok-{self.calls}", expires_at=self.clock() + self.lifetime)

    def get_acquirer_info(self) -> Dict[str, Any]:
        return {"type": "fake"}


class RecordingSleep:
    """Stands in for asyncio.sleep and records requested delays"""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class ScriptedTransport:
    """
    Replays a list of responses (or exceptions) for successive requests
    and records every request seen.
    """

    def __init__(self, responses: List[Any]):
        self.responses = list(responses)
        self.requests: List[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, Exception):
            raise item
        if callable(item):
            return item(request)
        # Fresh copy per request; a repeated item may be served several times
        return httpx.Response(item.status_code, headers=item.headers, content=item.content)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


def envelope(records: List[Dict[str, Any]], next_link: Optional[str] = None, count: Optional[int] = None) -> httpx.Response:
    body: Dict[str, Any] = {"@odata.context": "ctx", "value": records}
    if next_link:
        body["@odata.nextLink"] = next_link
    if count is not None:
        body["@odata.count"] = count
    return httpx.Response(200, json=body)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_acquirer() -> FakeAcquirer:
    return FakeAcquirer()


@pytest.fixture
def token_provider(fake_acquirer) -> TokenProvider:
    return TokenProvider(fake_acquirer, expiry_margin=60.0)


@pytest.fixture
def token() -> Token:
    return Token(access_token="test-token", expires_at=time.time() + 3600)


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def retry_policy() -> RetryPolicy:
    return RetryPolicy(max_retries=3, base_delay=1.0, max_delay=30.0, jitter=0.1)


@pytest.fixture
def make_executor(retry_policy, recording_sleep) -> Callable[..., D365QueryExecutor]:
    """Build an executor for a product over a scripted transport"""

    def _make(
        scripted: ScriptedTransport,
        product: ProductType = ProductType.FINOPS,
        policy: Optional[RetryPolicy] = None,
    ) -> D365QueryExecutor:
        endpoint = FNO_ENDPOINT if product == ProductType.FINOPS else DATAVERSE_ENDPOINT
        return D365QueryExecutor(
            product_shape_for(product, endpoint, page_size=500),
            policy=policy or retry_policy,
            timeout=5.0,
            transport=scripted.transport,
            sleep=recording_sleep,
        )

    return _make


@pytest.fixture
def auth_config() -> AuthConfig:
    return AuthConfig(
        tenant_id="test-tenant-id",
        client_id="test-client-id",
        client_secret=TEST_SECRET,
        endpoint=FNO_ENDPOINT,
        product=ProductType.FINOPS,
    )


@pytest.fixture
def adfs_config() -> AuthConfig:
    return AuthConfig(
        tenant_id="fs.contoso.local",
        client_id="test-client-id",
        client_secret=TEST_SECRET,
        endpoint="https://ax.contoso.local/namespaces/AXSF/data/",
        product=ProductType.FINOPS,
        auth_type=AuthType.ADFS,
        token_url="https://fs.contoso.local/adfs/oauth2/token",
        resource="https://ax.contoso.local",
    )


@pytest.fixture
def make_settings() -> Callable[..., Settings]:
    """Settings built from keyword arguments only (no environment, no .env)"""

    def _make(**overrides: Any) -> Settings:
        values: Dict[str, Any] = {
            "tenant_id": "test-tenant-id",
            "client_id": "test-client-id",
            "client_secret": TEST_SECRET,
            "endpoint": FNO_ENDPOINT,
            "product": "finops",
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return _make


@pytest.fixture
def make_acquirer() -> Callable[..., FakeAcquirer]:
    return FakeAcquirer


@pytest.fixture
def scripted() -> Callable[[List[Any]], ScriptedTransport]:
    return ScriptedTransport


@pytest.fixture(name="envelope")
def envelope_fixture() -> Callable[..., httpx.Response]:
    return envelope
