# suitsync/dependencies/clients.py
import httpx
from fastapi import Depends, Request
from sqlmodel.ext.asyncio.session import AsyncSession

from suitsync.accounts.schemas import SessionContext, TokenGrant
from suitsync.accounts.services import SessionLifecycleService
from suitsync.dependencies.auth import get_session_context
from suitsync.dependencies.db import get_session_dep
from suitsync.infrastructure import lightspeed_errors
from suitsync.infrastructure.lightspeed_client import LightspeedClient
from suitsync.infrastructure.server_bridge import ServerBridge


def get_lightspeed_http(request: Request) -> httpx.AsyncClient:
    return request.app.state.lightspeed_http


def get_server_bridge(request: Request) -> ServerBridge:
    return request.app.state.server_bridge


def get_lifecycle_service(session: AsyncSession = Depends(get_session_dep)) -> SessionLifecycleService:
    return SessionLifecycleService(session)


async def get_lightspeed_client(
    context: SessionContext = Depends(get_session_context),
    lifecycle: SessionLifecycleService = Depends(get_lifecycle_service),
    http: httpx.AsyncClient = Depends(get_lightspeed_http),
) -> LightspeedClient:
    credentials = await lifecycle.get_session_credentials(context.user_id, context.browser_session_id)
    if credentials is None:
        raise lightspeed_errors.make_error(lightspeed_errors.AUTH_FAILED, "No active Lightspeed session", 401)

    async def persist(grant: TokenGrant) -> None:
        await lifecycle.store_refreshed_tokens(context.user_id, context.browser_session_id, grant)

    return LightspeedClient(http, credentials, on_refresh=persist)
