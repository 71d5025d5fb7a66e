# suitsync/infrastructure/lightspeed_client.py
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Optional

import httpx
import structlog

from suitsync import config
from suitsync.accounts.schemas import LightspeedCredentials, TokenGrant
from suitsync.infrastructure import lightspeed_errors
from suitsync.infrastructure.lightspeed_errors import LightspeedError, make_error, with_lightspeed_error_handling

logger = structlog.get_logger(__name__)

DEFAULT_TOKEN_LIFETIME_SECONDS = 3600
AUTH_FAILED_CODE = f"{lightspeed_errors.ERROR_PREFIX}{lightspeed_errors.AUTH_FAILED}"

RefreshCallback = Callable[[TokenGrant], Awaitable[None]]


def api_base_url(domain_prefix: str) -> str:
    return f"https://{domain_prefix}.retail.lightspeed.app/api/2.0"


def token_url(domain_prefix: str) -> str:
    return f"https://{domain_prefix}.retail.lightspeed.app/api/1.0/token"


def _grant_from_response(data: dict, previous_refresh_token: Optional[str] = None) -> TokenGrant:
    if not data.get("access_token"):
        raise make_error(lightspeed_errors.API_ERROR, "No access token returned from Lightspeed", 502, details=data)
    expires_in = int(data.get("expires_in") or DEFAULT_TOKEN_LIFETIME_SECONDS)
    return TokenGrant(
        access_token=data["access_token"],
        refresh_token=data.get("refresh_token") or previous_refresh_token,
        expires_at=datetime.utcnow() + timedelta(seconds=expires_in),
    )


async def _post_token_form(http: httpx.AsyncClient, domain_prefix: str, form: dict) -> dict:
    r = await http.post(
        token_url(domain_prefix),
        data=form,
        headers={"Accept": "application/json"},
    )
    r.raise_for_status()
    return r.json()


async def exchange_code(
    http: httpx.AsyncClient,
    domain_prefix: str,
    code: str,
    client_id: str = config.LS_CLIENT_ID,
    client_secret: str = config.LS_CLIENT_SECRET,
    redirect_uri: str = config.LS_REDIRECT_URI,
) -> TokenGrant:
    """Authorization-code grant at the end of the OAuth redirect."""
    form = {
        "client_id": client_id,
        "client_secret": client_secret,
        "code": code,
        "grant_type": "authorization_code",
        "redirect_uri": redirect_uri,
    }

    async def operation() -> TokenGrant:
        return _grant_from_response(await _post_token_form(http, domain_prefix, form))

    grant = await with_lightspeed_error_handling(operation, endpoint="/token")
    logger.info("lightspeed_code_exchanged", domain_prefix=domain_prefix, expires_at=str(grant.expires_at))
    return grant


class LightspeedClient:
    """
    Lightspeed X-Series API client bound to one set of credentials.

    The httpx client is injected so callers (and tests) decide transport, pooling
    and lifetime. A 401 triggers one token refresh and one retry; every failure
    leaves as a LightspeedError.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        credentials: LightspeedCredentials,
        client_id: str = config.LS_CLIENT_ID,
        client_secret: str = config.LS_CLIENT_SECRET,
        on_refresh: Optional[RefreshCallback] = None,
    ):
        self.http = http
        self.credentials = credentials
        self.client_id = client_id
        self.client_secret = client_secret
        self.on_refresh = on_refresh

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.credentials.access_token}",
            "Accept": "application/json",
        }

    async def _send(self, method: str, endpoint: str, json=None, params=None) -> httpx.Response:
        r = await self.http.request(
            method,
            f"{api_base_url(self.credentials.domain_prefix)}{endpoint}",
            headers=self._headers(),
            json=json,
            params=params,
        )
        r.raise_for_status()
        return r

    async def refresh_access_token(self) -> TokenGrant:
        grant = await with_lightspeed_error_handling(self._refresh, endpoint="/token")
        if self.on_refresh:
            await self.on_refresh(grant)
        return grant

    async def _refresh(self) -> TokenGrant:
        if not self.credentials.refresh_token:
            raise make_error(lightspeed_errors.AUTH_FAILED, "No refresh token for Lightspeed session", 401, endpoint="/token")
        data = await _post_token_form(
            self.http,
            self.credentials.domain_prefix,
            {
                "grant_type": "refresh_token",
                "refresh_token": self.credentials.refresh_token,
                "client_id": self.client_id,
                "client_secret": self.client_secret,
            },
        )
        grant = _grant_from_response(data, self.credentials.refresh_token)
        self.credentials = LightspeedCredentials(
            domain_prefix=self.credentials.domain_prefix,
            access_token=grant.access_token,
            refresh_token=grant.refresh_token,
            expires_at=grant.expires_at,
        )
        logger.info("lightspeed_token_refreshed", domain_prefix=self.credentials.domain_prefix)
        return grant

    async def request(self, method: str, endpoint: str, json=None, params=None) -> Any:
        async def operation():
            r = await self._send(method, endpoint, json=json, params=params)
            return r.json()

        try:
            return await with_lightspeed_error_handling(operation, endpoint=endpoint)
        except LightspeedError as exc:
            if exc.code != AUTH_FAILED_CODE:
                raise
        logger.info("lightspeed_access_token_rejected", endpoint=endpoint)
        await self.refresh_access_token()
        return await with_lightspeed_error_handling(operation, endpoint=endpoint)

    async def get(self, endpoint: str, params: Optional[dict] = None) -> Any:
        return await self.request("GET", endpoint, params=params)

    async def post(self, endpoint: str, json: Any) -> Any:
        return await self.request("POST", endpoint, json=json)

    async def put(self, endpoint: str, json: Any) -> Any:
        return await self.request("PUT", endpoint, json=json)

    async def get_user(self, user_id: str) -> dict:
        payload = await self.get(f"/users/{user_id}")
        return (payload or {}).get("data") or {}
