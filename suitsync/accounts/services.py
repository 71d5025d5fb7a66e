# suitsync/accounts/services.py
from typing import List, Optional
from datetime import datetime, timedelta
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlalchemy.exc import SQLAlchemyError
import structlog

from suitsync import config
from suitsync.infrastructure.token_repo import ServiceTokenRepository
from .models import User, UserSession
from .repository import UserRepository, UserSessionRepository
from .schemas import (
    DeviceInfo,
    LightspeedCredentials,
    LightspeedUserData,
    SessionRead,
    TokenGrant,
)
from . import utils

logger = structlog.get_logger(__name__)


def to_session_read(row: UserSession, user: User) -> SessionRead:
    return SessionRead(
        id=row.id,
        user_id=row.user_id,
        browser_session_id=row.browser_session_id,
        lightspeed_user_id=user.lightspeed_employee_id,
        name=user.name,
        email=user.email,
        role=user.role,
        photo_url=user.photo_url,
        domain_prefix=row.domain_prefix,
        device_info=DeviceInfo(**row.device_info) if row.device_info else None,
        expires_at=row.expires_at,
        last_active=row.last_active,
    )


class SessionLifecycleService:
    """
    Persistent Lightspeed sessions: one service-level token per installation and
    any number of per-device user sessions.

    A session is active while expires_at is in the future. Expiry is a column
    value checked by every read; rows are only removed by cleanup_expired_sessions.
    """

    def __init__(self, session: AsyncSession, retention_days: int = config.SESSION_RETENTION_DAYS):
        self.session = session
        self.retention_days = retention_days
        self.tokens = ServiceTokenRepository(session)
        self.users = UserRepository(session)
        self.sessions = UserSessionRepository(session)

    async def upsert_service_token(
        self,
        service: str,
        access_token: str,
        refresh_token: Optional[str],
        expires_at: Optional[datetime],
        commit: bool = True,
    ) -> None:
        await self.tokens.upsert(
            service,
            utils.encrypt_token(access_token),
            utils.encrypt_token(refresh_token),
            expires_at,
        )
        if commit:
            await self.session.commit()
        logger.info("service_token_upserted", service=service, expires_at=str(expires_at))

    async def get_service_token(self, service: str = config.LIGHTSPEED_SERVICE) -> Optional[LightspeedCredentials]:
        row = await self.tokens.get_by_service(service)
        if not row:
            return None
        return LightspeedCredentials(
            domain_prefix=config.LS_DOMAIN,
            access_token=utils.decrypt_token(row.access_token_enc),
            refresh_token=utils.decrypt_token(row.refresh_token_enc),
            expires_at=row.expires_at,
        )

    async def create_or_update_user_session(
        self,
        user_data: LightspeedUserData,
        device_info: Optional[DeviceInfo] = None,
        browser_session_id: Optional[str] = None,
    ) -> SessionRead:
        """
        Record a successful Lightspeed login.

        Reuses the caller's browser session id unless that session has expired, else
        the user's most recent active session, else starts a new one. Failures are re-raised: a silent failure here
        would leave local and Lightspeed credentials out of step.
        """
        try:
            await self.upsert_service_token(
                config.LIGHTSPEED_SERVICE,
                user_data.access_token,
                user_data.refresh_token,
                user_data.expires_at,
                commit=False,
            )

            user = await self.users.upsert_profile(
                lightspeed_employee_id=user_data.lightspeed_employee_id,
                email=user_data.email,
                name=user_data.name,
                role=user_data.role,
                photo_url=user_data.photo_url,
            )

            now = datetime.utcnow()
            if browser_session_id is not None:
                existing = await self.sessions.get(user.id, browser_session_id)
                if existing and existing.expires_at <= now:
                    # expired sessions are never reactivated
                    browser_session_id = None

            if browser_session_id is None:
                current = await self.sessions.get_latest_active(user.id, now)
                if current:
                    browser_session_id = current.browser_session_id
                else:
                    browser_session_id = utils.generate_browser_session_id(user_data.lightspeed_user_id)

            row = await self.sessions.upsert(
                user_id=user.id,
                browser_session_id=browser_session_id,
                access_token_enc=utils.encrypt_token(user_data.access_token),
                refresh_token_enc=utils.encrypt_token(user_data.refresh_token),
                domain_prefix=user_data.domain_prefix,
                expires_at=user_data.expires_at,
                device_info=device_info.model_dump() if device_info else None,
            )
            result = to_session_read(row, user)
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.exception("session_upsert_failed", lightspeed_user_id=user_data.lightspeed_user_id, error=str(e))
            raise

        logger.info(
            "session_upserted",
            user_id=result.user_id,
            session_id=result.id,
            browser_session_id=browser_session_id,
            name=result.name,
        )
        return result

    async def get_active_session(self, user_id: int) -> Optional[SessionRead]:
        try:
            row = await self.sessions.get_latest_active(user_id, datetime.utcnow())
            if not row:
                return None
            user = await self.users.get_by_id(row.user_id)
        except SQLAlchemyError as e:
            logger.exception("get_active_session_failed", user_id=user_id, error=str(e))
            return None
        return to_session_read(row, user)

    async def get_active_sessions(self) -> List[SessionRead]:
        try:
            rows = await self.sessions.list_active_with_users(datetime.utcnow())
        except SQLAlchemyError as e:
            logger.exception("get_active_sessions_failed", error=str(e))
            return []
        return [to_session_read(row, user) for row, user in rows]

    async def update_activity(self, user_id: int) -> int:
        try:
            touched = await self.sessions.touch_active(user_id, datetime.utcnow())
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.exception("update_activity_failed", user_id=user_id, error=str(e))
            return 0
        logger.debug("session_activity_updated", user_id=user_id, sessions=touched)
        return touched

    async def deactivate_session(self, user_id: int) -> int:
        try:
            expired = await self.sessions.expire_all(user_id, datetime.utcnow())
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.exception("deactivate_session_failed", user_id=user_id, error=str(e))
            return 0
        logger.info("session_deactivated", user_id=user_id, sessions=expired)
        return expired

    async def cleanup_expired_sessions(self) -> int:
        cutoff = datetime.utcnow() - timedelta(days=self.retention_days)
        try:
            purged = await self.sessions.delete_inactive_since(cutoff)
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.exception("session_cleanup_failed", error=str(e))
            return 0
        logger.info("expired_sessions_purged", purged=purged, retention_days=self.retention_days)
        return purged

    async def get_session_credentials(self, user_id: int, browser_session_id: str) -> Optional[LightspeedCredentials]:
        row = await self.sessions.get(user_id, browser_session_id)
        if not row or row.expires_at <= datetime.utcnow():
            return None
        access_token = utils.decrypt_token(row.access_token_enc)
        if not access_token:
            return None
        return LightspeedCredentials(
            domain_prefix=row.domain_prefix,
            access_token=access_token,
            refresh_token=utils.decrypt_token(row.refresh_token_enc),
            expires_at=row.expires_at,
        )

    async def store_refreshed_tokens(self, user_id: int, browser_session_id: str, grant: TokenGrant) -> None:
        row = await self.sessions.get(user_id, browser_session_id)
        if not row:
            logger.warning("refresh_for_unknown_session", user_id=user_id, browser_session_id=browser_session_id)
            return
        if row.expires_at <= datetime.utcnow():
            logger.warning("refresh_for_expired_session", user_id=user_id, session_id=row.id)
            return
        updated = await self.sessions.update_tokens(
            row,
            utils.encrypt_token(grant.access_token),
            utils.encrypt_token(grant.refresh_token),
            grant.expires_at,
        )
        if not updated:
            # expired between the read and the write
            logger.warning("refresh_for_expired_session", user_id=user_id, session_id=row.id)
            return
        logger.info("session_tokens_refreshed", user_id=user_id, session_id=row.id, expires_at=str(grant.expires_at))
