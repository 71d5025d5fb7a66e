# suitsync/jobs/session_cleanup.py
"""
Purge sessions that expired more than SESSION_RETENTION_DAYS ago.

Run from cron or any scheduler:

    python -m suitsync.jobs.session_cleanup
"""
import asyncio
import structlog

from suitsync.accounts.services import SessionLifecycleService
from suitsync.infrastructure.database import get_session, init_db

logger = structlog.get_logger(__name__)


async def run_session_cleanup(session_factory=get_session) -> int:
    async with session_factory() as session:
        purged = await SessionLifecycleService(session).cleanup_expired_sessions()
    logger.info("session_cleanup_job_finished", purged=purged)
    return purged


async def _main() -> int:
    await init_db()
    return await run_session_cleanup()


def main():
    asyncio.run(_main())


if __name__ == "__main__":
    main()
