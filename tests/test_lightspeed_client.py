"""Tests for the Lightspeed API client and OAuth code exchange."""
from datetime import datetime

import httpx
import pytest

from suitsync.accounts.schemas import LightspeedCredentials
from suitsync.infrastructure.lightspeed_client import LightspeedClient, exchange_code
from suitsync.infrastructure.lightspeed_errors import LightspeedError

API = "/api/2.0"
TOKEN = "/api/1.0/token"


def make_client(http, refresh_token="ls-refresh", on_refresh=None) -> LightspeedClient:
    return LightspeedClient(
        http,
        LightspeedCredentials(domain_prefix="suitshop", access_token="stale", refresh_token=refresh_token),
        client_id="cid",
        client_secret="secret",
        on_refresh=on_refresh,
    )


class TestRequest:
    async def test_get_sends_bearer_token(self, lightspeed, lightspeed_http):
        lightspeed.add("GET", f"{API}/customers", json={"data": [{"id": "c1"}]})
        client = make_client(lightspeed_http)

        payload = await client.get("/customers", params={"page_size": 10})

        assert payload == {"data": [{"id": "c1"}]}
        request = lightspeed.calls[0]
        assert request.url.host == "suitshop.retail.lightspeed.app"
        assert request.url.params["page_size"] == "10"
        assert request.headers["Authorization"] == "Bearer stale"

    async def test_unauthorized_refreshes_once_and_retries(self, lightspeed, lightspeed_http):
        lightspeed.add("GET", f"{API}/users/7", status=401, json={"error": "expired"})
        lightspeed.add("GET", f"{API}/users/7", json={"data": {"id": "7", "display_name": "Ada"}})
        lightspeed.add("POST", TOKEN, json={"access_token": "fresh", "refresh_token": "ls-refresh-2", "expires_in": 7200})
        grants = []

        async def on_refresh(grant):
            grants.append(grant)

        client = make_client(lightspeed_http, on_refresh=on_refresh)
        user = await client.get_user("7")

        assert user["display_name"] == "Ada"
        assert [c.url.path for c in lightspeed.calls] == [f"{API}/users/7", TOKEN, f"{API}/users/7"]
        assert lightspeed.calls[-1].headers["Authorization"] == "Bearer fresh"
        assert b"grant_type=refresh_token" in lightspeed.calls[1].content
        assert client.credentials.refresh_token == "ls-refresh-2"
        assert len(grants) == 1
        assert grants[0].access_token == "fresh"
        assert grants[0].expires_at > datetime.utcnow()

    async def test_second_unauthorized_is_auth_failed(self, lightspeed, lightspeed_http):
        lightspeed.add("GET", f"{API}/sales", status=401, json={"error": "nope"})
        lightspeed.add("POST", TOKEN, json={"access_token": "fresh"})
        client = make_client(lightspeed_http)

        with pytest.raises(LightspeedError) as info:
            await client.get("/sales")

        assert info.value.code == "LIGHTSPEED_AUTH_FAILED"
        assert info.value.endpoint == "/sales"
        # one refresh, one retry, no loop
        assert len(lightspeed.calls) == 3

    async def test_missing_refresh_token_is_auth_failed(self, lightspeed, lightspeed_http):
        lightspeed.add("GET", f"{API}/sales", status=401)
        client = make_client(lightspeed_http, refresh_token=None)

        with pytest.raises(LightspeedError) as info:
            await client.get("/sales")

        assert info.value.code == "LIGHTSPEED_AUTH_FAILED"
        assert info.value.endpoint == "/token"

    async def test_rejected_refresh_is_classified_at_token_endpoint(self, lightspeed, lightspeed_http):
        lightspeed.add("POST", TOKEN, status=400, json={"error": "invalid_grant"})
        client = make_client(lightspeed_http)

        with pytest.raises(LightspeedError) as info:
            await client.refresh_access_token()

        assert info.value.code == "LIGHTSPEED_API_ERROR"
        assert info.value.status_code == 400
        assert info.value.details == {"error": "invalid_grant"}

    async def test_rate_limit_carries_retry_after(self, lightspeed, lightspeed_http):
        lightspeed.add("GET", f"{API}/products", status=429, headers={"retry-after": "45"})
        client = make_client(lightspeed_http)

        with pytest.raises(LightspeedError) as info:
            await client.get("/products")

        assert info.value.code == "LIGHTSPEED_RATE_LIMITED"
        assert info.value.status_code == 429
        assert info.value.retry_after == "45"

    async def test_transport_failure_is_network_error(self, lightspeed, lightspeed_http):
        lightspeed.add("GET", f"{API}/products", exc=httpx.ConnectError("connection refused"))
        client = make_client(lightspeed_http)

        with pytest.raises(LightspeedError) as info:
            await client.get("/products")

        assert info.value.code == "LIGHTSPEED_NETWORK_ERROR"
        assert info.value.status_code == 500


class TestExchangeCode:
    async def test_exchange_code(self, lightspeed, lightspeed_http):
        lightspeed.add("POST", TOKEN, json={"access_token": "acc", "refresh_token": "ref", "expires_in": 3600})

        grant = await exchange_code(lightspeed_http, "suitshop", "the-code", "cid", "secret", "http://app/cb")

        assert grant.access_token == "acc"
        assert grant.refresh_token == "ref"
        body = lightspeed.calls[0].content
        assert b"grant_type=authorization_code" in body
        assert b"code=the-code" in body

    async def test_response_without_access_token_is_api_error(self, lightspeed, lightspeed_http):
        lightspeed.add("POST", TOKEN, json={"error": "weird"})

        with pytest.raises(LightspeedError) as info:
            await exchange_code(lightspeed_http, "suitshop", "the-code")

        assert info.value.code == "LIGHTSPEED_API_ERROR"
        assert info.value.status_code == 502
        assert info.value.endpoint is None
