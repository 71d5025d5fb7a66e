# suitsync/infrastructure/token_repo.py
from typing import Optional
from datetime import datetime
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlmodel import select

from suitsync.infrastructure.database import upsert_statement
from suitsync.models.api_token import ExternalApiToken


class ServiceTokenRepository:
    """
    Repository for the installation-wide ExternalApiToken rows.
    Expects an AsyncSession injected from the outside.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_service(self, service: str) -> Optional[ExternalApiToken]:
        q = select(ExternalApiToken).where(ExternalApiToken.service == service)
        res = await self.session.execute(q.execution_options(populate_existing=True))
        return res.scalar_one_or_none()

    async def upsert(
        self,
        service: str,
        access_token_enc: str,
        refresh_token_enc: Optional[str],
        expires_at: Optional[datetime],
    ) -> None:
        """
        Create or overwrite the row for `service` in one statement.
        Does not commit; the caller owns the transaction.
        """
        values = {
            "service": service,
            "access_token_enc": access_token_enc,
            "refresh_token_enc": refresh_token_enc,
            "expires_at": expires_at,
            "updated_at": datetime.utcnow(),
        }
        stmt = upsert_statement(
            self.session,
            ExternalApiToken,
            values,
            conflict_columns=["service"],
            update_columns=["access_token_enc", "refresh_token_enc", "expires_at", "updated_at"],
        )
        await self.session.execute(stmt)
