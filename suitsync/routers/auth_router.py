# suitsync/routers/auth_router.py
from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import RedirectResponse
from sqlalchemy.exc import SQLAlchemyError
from typing import Optional
from urllib.parse import quote
import httpx
import structlog

from suitsync import config
from suitsync.accounts import utils
from suitsync.accounts.schemas import DeviceInfo, SessionContext
from suitsync.accounts.services import SessionLifecycleService
from suitsync.dependencies.auth import get_optional_session_context, get_session_context
from suitsync.dependencies.clients import get_lifecycle_service, get_lightspeed_client, get_lightspeed_http
from suitsync.infrastructure.lightspeed_client import LightspeedClient
from suitsync.infrastructure.lightspeed_errors import LightspeedError
from suitsync.services.lightspeed_auth_service import LightspeedAuthService

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/auth", tags=["auth"])


def _login_redirect(error: str, details: Optional[str] = None) -> RedirectResponse:
    url = f"{config.FRONTEND_URL}/login?error={error}"
    if details:
        url += f"&details={quote(details)}"
    return RedirectResponse(url, status_code=302)


def _login_redirect_success(name: str) -> RedirectResponse:
    return RedirectResponse(f"{config.FRONTEND_URL}/dashboard?auth=success&user={quote(name)}", status_code=302)


def set_session_cookie(response: Response, context: SessionContext) -> dict:
    token = utils.create_session_token(context)
    response.set_cookie(
        key=config.SESSION_COOKIE_NAME,
        value=token["token"],
        httponly=True,
        secure=config.COOKIE_SECURE,
        samesite=config.COOKIE_SAMESITE,
        max_age=config.SESSION_TOKEN_EXPIRE_HOURS * 3600,
    )
    return token


def _device_info(request: Request) -> DeviceInfo:
    user_agent = request.headers.get("user-agent") or "unknown"
    return DeviceInfo(
        user_agent=user_agent,
        ip_address=request.client.host if request.client else "unknown",
        device_type=utils.detect_device_type(user_agent),
    )


@router.get("/start-lightspeed")
async def start_lightspeed(
    http: httpx.AsyncClient = Depends(get_lightspeed_http),
    lifecycle: SessionLifecycleService = Depends(get_lifecycle_service),
    current: Optional[SessionContext] = Depends(get_optional_session_context),
):
    # a browser that already holds a session keeps its browser session id
    browser_session_id = current.browser_session_id if current else None
    svc = LightspeedAuthService(http, lifecycle)
    url = svc.authorization_url(utils.create_oauth_state(browser_session_id))
    logger.info("lightspeed_oauth_redirect", reuses_browser_session=current is not None)
    return RedirectResponse(url, status_code=302)


@router.get("/callback")
async def callback(
    request: Request,
    code: Optional[str] = None,
    state: Optional[str] = None,
    domain_prefix: Optional[str] = None,
    user_id: Optional[str] = None,
    error: Optional[str] = None,
    error_description: Optional[str] = None,
    http: httpx.AsyncClient = Depends(get_lightspeed_http),
    lifecycle: SessionLifecycleService = Depends(get_lifecycle_service),
):
    if error:
        logger.error("oauth_callback_error", error=error, error_description=error_description)
        return _login_redirect("oauth_error", error_description or "An error occurred during authorization.")
    oauth_state = utils.verify_oauth_state(state)
    if oauth_state is None:
        logger.error("oauth_state_mismatch")
        return _login_redirect("state_mismatch")
    if config.LS_DOMAIN and domain_prefix != config.LS_DOMAIN:
        logger.error("oauth_domain_mismatch", received=domain_prefix, expected=config.LS_DOMAIN)
        return _login_redirect("domain_mismatch")
    if not code or not domain_prefix or not user_id:
        logger.error("oauth_callback_incomplete", has_code=bool(code), domain_prefix=domain_prefix, user_id=user_id)
        return _login_redirect("callback_failed", "Could not determine user from Lightspeed callback.")

    svc = LightspeedAuthService(http, lifecycle)
    try:
        session = await svc.complete_login(
            code, domain_prefix, user_id, _device_info(request), browser_session_id=oauth_state.get("bsid")
        )
    except LightspeedError as e:
        logger.warning("oauth_callback_failed", code=e.code, error=e.message)
        return _login_redirect("callback_failed", e.message)
    except SQLAlchemyError as e:
        return _login_redirect("session_creation_failed", str(e))

    response = _login_redirect_success(session.name)
    set_session_cookie(
        response,
        SessionContext(
            user_id=session.user_id,
            browser_session_id=session.browser_session_id,
            lightspeed_user_id=session.lightspeed_user_id,
        ),
    )
    return response


@router.post("/refresh")
async def refresh(client: LightspeedClient = Depends(get_lightspeed_client)):
    grant = await client.refresh_access_token()
    return {"success": True, "expiresAt": grant.expires_at.isoformat()}


@router.post("/logout")
async def logout(
    response: Response,
    context: SessionContext = Depends(get_session_context),
    lifecycle: SessionLifecycleService = Depends(get_lifecycle_service),
):
    expired = await lifecycle.deactivate_session(context.user_id)
    response.delete_cookie(config.SESSION_COOKIE_NAME)
    logger.info("logout", user_id=context.user_id, sessions=expired)
    return {"ok": True}
