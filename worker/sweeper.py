import asyncio
import logging

from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker

from onboarding.core.config import settings
import onboarding.models  # noqa: F401
from onboarding.services.audit import ActivityLog
from onboarding.services.leads import expire_stale_leads


log = logging.getLogger(__name__)


async def _tick(Session) -> int:
    async with Session() as db:
        expired = await expire_stale_leads(db, ActivityLog(Session), batch_size=settings.sweep_batch_size)
    log.info("tick: expired %d leads", len(expired))
    return len(expired)


async def main():
    logging.basicConfig(level=settings.log_level)
    log.info("sweeper: started (every %ss)", settings.sweep_interval_seconds)

    engine = create_async_engine(settings.database_url, pool_pre_ping=True)
    Session = async_sessionmaker(engine, expire_on_commit=False)
    try:
        while True:
            try:
                await _tick(Session)
            except Exception:
                log.exception("sweeper: tick crashed")
            await asyncio.sleep(settings.sweep_interval_seconds)
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
