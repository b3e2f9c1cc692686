"""
Tests for the Azure AD and ADFS token acquirers
"""

import time
from unittest.mock import MagicMock
from urllib.parse import parse_qs

import httpx
import pytest
from azure.core.credentials import AccessToken
from azure.core.exceptions import ClientAuthenticationError

from d365_odata_mcp.auth import AdfsTokenAcquirer, AuthError, AzureADTokenAcquirer
from d365_odata_mcp.config import AuthConfig, AuthType, ProductType

TEST_SECRET = "test-client-secret-value"


@pytest.mark.unit
class TestAzureADTokenAcquirer:
    async def test_requests_default_scope_for_endpoint_host(self, auth_config):
        credential = MagicMock()
        credential.get_token.return_value = AccessToken("az-token", 12345)
        acquirer = AzureADTokenAcquirer(auth_config, credential=credential)

        token = await acquirer.acquire()

        credential.get_token.assert_called_once_with("https://contoso.operations.dynamics.com/.default")
        assert token.access_token == "az-token"
        assert token.expires_at == 12345.0

    async def test_resource_override_sets_scope(self, auth_config):
        config = AuthConfig(
            tenant_id=auth_config.tenant_id,
            client_id=auth_config.client_id,
            client_secret=auth_config.client_secret,
            endpoint=auth_config.endpoint,
            product=auth_config.product,
            resource="https://custom.example.com/",
        )
        credential = MagicMock()
        credential.get_token.return_value = AccessToken("az-token", 12345)
        acquirer = AzureADTokenAcquirer(config, credential=credential)

        await acquirer.acquire()

        credential.get_token.assert_called_once_with("https://custom.example.com/.default")

    async def test_rejection_maps_to_auth_error_with_aadsts_code(self, auth_config):
        credential = MagicMock()
        credential.get_token.side_effect = ClientAuthenticationError(
            message="AADSTS7000215: Invalid client secret provided."
        )
        acquirer = AzureADTokenAcquirer(auth_config, credential=credential)

        with pytest.raises(AuthError) as exc_info:
            await acquirer.acquire()

        assert exc_info.value.error_code == "AADSTS7000215"
        assert TEST_SECRET not in str(exc_info.value)

    def test_acquirer_info(self, auth_config):
        acquirer = AzureADTokenAcquirer(auth_config, credential=MagicMock())
        info = acquirer.get_acquirer_info()

        assert info["type"] == "azure"
        assert info["token_url"] == "https://login.microsoftonline.com/test-tenant-id/oauth2/v2.0/token"
        assert TEST_SECRET not in str(info)


@pytest.mark.unit
class TestAdfsTokenAcquirer:
    async def test_posts_client_credentials_with_resource(self, adfs_config):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"access_token": "adfs-token", "expires_in": 3600})

        acquirer = AdfsTokenAcquirer(adfs_config, transport=httpx.MockTransport(handler))
        before = time.time()
        token = await acquirer.acquire()

        assert token.access_token == "adfs-token"
        assert token.expires_at >= before + 3600

        request = seen[0]
        assert request.method == "POST"
        assert str(request.url) == "https://fs.contoso.local/adfs/oauth2/token"
        form = parse_qs(request.content.decode())
        assert form["grant_type"] == ["client_credentials"]
        assert form["client_id"] == ["test-client-id"]
        assert form["resource"] == ["https://ax.contoso.local"]
        assert "scope" not in form

    def test_default_token_url_from_authority_host(self):
        config = AuthConfig(
            tenant_id="fs.contoso.local",
            client_id="id",
            client_secret="secret",
            endpoint="https://ax.contoso.local/data/",
            product=ProductType.FINOPS,
            auth_type=AuthType.ADFS,
        )
        acquirer = AdfsTokenAcquirer(config)

        assert acquirer.token_url == "https://fs.contoso.local/adfs/oauth2/token"
        assert acquirer.resource == "https://ax.contoso.local"

    async def test_rejection_maps_to_auth_error(self, adfs_config):
        transport = httpx.MockTransport(
            lambda request: httpx.Response(
                400, json={"error": "invalid_client", "error_description": "MSIS9607: bad client"}
            )
        )
        acquirer = AdfsTokenAcquirer(adfs_config, transport=transport)

        with pytest.raises(AuthError) as exc_info:
            await acquirer.acquire()

        assert exc_info.value.error_code == "invalid_client"
        assert exc_info.value.status_code == 400
        assert TEST_SECRET not in str(exc_info.value)

    async def test_network_failure_maps_to_auth_error(self, adfs_config):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        acquirer = AdfsTokenAcquirer(adfs_config, transport=httpx.MockTransport(handler))

        with pytest.raises(AuthError) as exc_info:
            await acquirer.acquire()

        assert exc_info.value.error_code == "ConnectError"

    async def test_missing_access_token_is_rejected(self, adfs_config):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"expires_in": 3600}))
        acquirer = AdfsTokenAcquirer(adfs_config, transport=transport)

        with pytest.raises(AuthError) as exc_info:
            await acquirer.acquire()

        assert exc_info.value.error_code == "invalid_token_response"
