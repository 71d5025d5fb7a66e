# suitsync/accounts/repository.py
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlmodel import select
from sqlalchemy import delete, update
from .models import User, UserSession
from typing import List, Optional, Tuple
from datetime import datetime

from suitsync.infrastructure.database import upsert_statement


class UserRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, user_id: int) -> Optional[User]:
        q = select(User).where(User.id == user_id)
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def get_by_lightspeed_id(self, lightspeed_employee_id: str) -> Optional[User]:
        q = select(User).where(User.lightspeed_employee_id == lightspeed_employee_id)
        res = await self.session.execute(q.execution_options(populate_existing=True))
        return res.scalar_one_or_none()

    async def upsert_profile(
        self,
        lightspeed_employee_id: str,
        email: str,
        name: str,
        role: str,
        photo_url: Optional[str],
    ) -> User:
        """Find-or-create by Lightspeed employee id, refreshing profile fields. Does not commit."""
        now = datetime.utcnow()
        stmt = upsert_statement(
            self.session,
            User,
            {
                "lightspeed_employee_id": lightspeed_employee_id,
                "email": email,
                "name": name,
                "role": role,
                "photo_url": photo_url,
                "created_at": now,
                "updated_at": now,
            },
            conflict_columns=["lightspeed_employee_id"],
            update_columns=["email", "name", "role", "photo_url", "updated_at"],
        )
        await self.session.execute(stmt)
        return await self.get_by_lightspeed_id(lightspeed_employee_id)


class UserSessionRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, user_id: int, browser_session_id: str) -> Optional[UserSession]:
        q = select(UserSession).where(
            UserSession.user_id == user_id,
            UserSession.browser_session_id == browser_session_id,
        )
        res = await self.session.execute(q.execution_options(populate_existing=True))
        return res.scalar_one_or_none()

    async def get_latest_active(self, user_id: int, now: datetime) -> Optional[UserSession]:
        q = (
            select(UserSession)
            .where(UserSession.user_id == user_id, UserSession.expires_at > now)
            .order_by(UserSession.last_active.desc(), UserSession.id.desc())
            .limit(1)
        )
        res = await self.session.execute(q.execution_options(populate_existing=True))
        return res.scalar_one_or_none()

    async def list_active_with_users(self, now: datetime) -> List[Tuple[UserSession, User]]:
        q = (
            select(UserSession, User)
            .join(User, User.id == UserSession.user_id)
            .where(UserSession.expires_at > now)
            .order_by(UserSession.last_active.desc(), UserSession.id.desc())
        )
        res = await self.session.execute(q.execution_options(populate_existing=True))
        return [(row[0], row[1]) for row in res.all()]

    async def upsert(
        self,
        user_id: int,
        browser_session_id: str,
        access_token_enc: str,
        refresh_token_enc: Optional[str],
        domain_prefix: str,
        expires_at: datetime,
        device_info: Optional[dict],
    ) -> UserSession:
        """
        Create or update the session keyed by (user_id, browser_session_id) in one
        statement, so concurrent logins for the same browser cannot duplicate it.
        Does not commit.
        """
        now = datetime.utcnow()
        values = {
            "user_id": user_id,
            "browser_session_id": browser_session_id,
            "access_token_enc": access_token_enc,
            "refresh_token_enc": refresh_token_enc,
            "domain_prefix": domain_prefix,
            "device_info": device_info,
            "expires_at": expires_at,
            "last_active": now,
            "created_at": now,
        }
        update_columns = ["access_token_enc", "refresh_token_enc", "domain_prefix", "expires_at", "last_active"]
        if device_info is not None:
            update_columns.append("device_info")
        stmt = upsert_statement(
            self.session,
            UserSession,
            values,
            conflict_columns=["user_id", "browser_session_id"],
            update_columns=update_columns,
        )
        await self.session.execute(stmt)
        return await self.get(user_id, browser_session_id)

    async def update_tokens(
        self,
        session_row: UserSession,
        access_token_enc: str,
        refresh_token_enc: Optional[str],
        expires_at: datetime,
    ) -> int:
        """Write refreshed tokens to a still-active session. Returns the rows updated (0 once expired)."""
        now = datetime.utcnow()
        values = {"access_token_enc": access_token_enc, "expires_at": expires_at, "last_active": now}
        if refresh_token_enc is not None:
            values["refresh_token_enc"] = refresh_token_enc
        stmt = (
            update(UserSession)
            .where(UserSession.id == session_row.id, UserSession.expires_at > now)
            .values(**values)
        )
        res = await self.session.execute(stmt)
        await self.session.commit()
        return res.rowcount

    async def touch_active(self, user_id: int, now: datetime) -> int:
        stmt = (
            update(UserSession)
            .where(UserSession.user_id == user_id, UserSession.expires_at > now)
            .values(last_active=now)
        )
        res = await self.session.execute(stmt)
        await self.session.commit()
        return res.rowcount

    async def expire_all(self, user_id: int, now: datetime) -> int:
        stmt = update(UserSession).where(UserSession.user_id == user_id).values(expires_at=now)
        res = await self.session.execute(stmt)
        await self.session.commit()
        return res.rowcount

    async def delete_inactive_since(self, cutoff: datetime) -> int:
        stmt = delete(UserSession).where(UserSession.last_active < cutoff)
        res = await self.session.execute(stmt)
        await self.session.commit()
        return res.rowcount
