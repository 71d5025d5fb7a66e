# suitsync/infrastructure/database.py
from contextlib import asynccontextmanager
from typing import Any, Dict, Iterable

from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio.engine import create_async_engine, AsyncEngine
import structlog

from suitsync.config import DATABASE_URL

logger = structlog.get_logger(__name__)

engine: AsyncEngine = create_async_engine(DATABASE_URL, echo=False)

_INSERT_BY_DIALECT = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


async def init_db(bind: AsyncEngine = engine):
    # register table metadata before create_all
    from suitsync.accounts import models as _account_models  # noqa: F401
    from suitsync.models import api_token as _api_token  # noqa: F401

    async with bind.begin() as connection:
        await connection.run_sync(SQLModel.metadata.create_all)
    logger.info("db_tables_ready")


@asynccontextmanager
async def get_session() -> AsyncSession:
    async with AsyncSession(engine, expire_on_commit=False) as session:
        yield session


def upsert_statement(
    session: AsyncSession,
    model,
    values: Dict[str, Any],
    conflict_columns: Iterable[str],
    update_columns: Iterable[str],
):
    """
    Build a single INSERT .. ON CONFLICT DO UPDATE for the session's dialect.
    The row is created or overwritten atomically by the database.
    """
    dialect = session.get_bind().dialect.name
    insert = _INSERT_BY_DIALECT.get(dialect)
    if insert is None:
        raise NotImplementedError(f"upsert not supported for dialect {dialect!r}")

    stmt = insert(model.__table__).values(**values)
    return stmt.on_conflict_do_update(
        index_elements=list(conflict_columns),
        set_={column: stmt.excluded[column] for column in update_columns},
    )
