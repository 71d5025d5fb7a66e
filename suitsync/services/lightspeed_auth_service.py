# suitsync/services/lightspeed_auth_service.py
from typing import Optional
import httpx
import structlog

from suitsync import config
from suitsync.accounts import utils
from suitsync.accounts.schemas import DeviceInfo, LightspeedCredentials, LightspeedUserData, SessionRead
from suitsync.accounts.services import SessionLifecycleService
from suitsync.infrastructure import lightspeed_errors
from suitsync.infrastructure.lightspeed_client import LightspeedClient, exchange_code

logger = structlog.get_logger(__name__)

REQUIRED_USER_FIELDS = ("id", "display_name", "account_type")


class LightspeedAuthService:
    def __init__(self, http: httpx.AsyncClient, lifecycle: SessionLifecycleService):
        self.http = http
        self.lifecycle = lifecycle

    def authorization_url(self, state: str) -> str:
        params = {
            "response_type": "code",
            "client_id": config.LS_CLIENT_ID,
            "redirect_uri": config.LS_REDIRECT_URI,
            "state": state,
        }
        return str(httpx.URL(config.LS_AUTHORIZE_URL, params=params))

    async def complete_login(
        self,
        code: str,
        domain_prefix: str,
        lightspeed_user_id: str,
        device_info: Optional[DeviceInfo] = None,
        browser_session_id: Optional[str] = None,
    ) -> SessionRead:
        grant = await exchange_code(self.http, domain_prefix, code)

        client = LightspeedClient(
            self.http,
            LightspeedCredentials(
                domain_prefix=domain_prefix,
                access_token=grant.access_token,
                refresh_token=grant.refresh_token,
                expires_at=grant.expires_at,
            ),
        )
        profile = await client.get_user(lightspeed_user_id)
        if not all(field in profile for field in REQUIRED_USER_FIELDS):
            logger.error("lightspeed_user_payload_invalid", lightspeed_user_id=lightspeed_user_id)
            raise lightspeed_errors.make_error(
                lightspeed_errors.API_ERROR,
                "Could not parse user details from Lightspeed response",
                502,
                details=profile,
                endpoint=f"/users/{lightspeed_user_id}",
            )

        ls_id = str(profile["id"])
        # Lightspeed users may have no email; fall back to the username
        email = profile.get("email") or f"{profile.get('username', ls_id)}@lightspeed.local"
        role = utils.map_lightspeed_role(profile.get("account_type"))
        logger.info("lightspeed_user_authenticated", lightspeed_user_id=ls_id, account_type=profile.get("account_type"), role=role)

        user_data = LightspeedUserData(
            lightspeed_user_id=ls_id,
            lightspeed_employee_id=ls_id,
            email=email,
            name=profile["display_name"],
            role=role,
            photo_url=profile.get("photo_url") or None,
            access_token=grant.access_token,
            refresh_token=grant.refresh_token,
            expires_at=grant.expires_at,
            domain_prefix=domain_prefix,
        )
        return await self.lifecycle.create_or_update_user_session(user_data, device_info, browser_session_id)
