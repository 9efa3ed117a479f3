import asyncio
import logging

from memorial.db.base import engine, Base
# Import models so the engine sees their metadata
from memorial.models import approver, message  # noqa: F401

logger = logging.getLogger("memorial.init_db")


async def init_models(reset: bool = False):
    async with engine.begin() as conn:
        if reset:
            # DEV MODE ONLY
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Tables created")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(init_models())
