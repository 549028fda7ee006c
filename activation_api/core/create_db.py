# activation_api/core/create_db.py

import asyncio

from activation_api.core.config import get_settings
from activation_api.models.activation_code import Base
from activation_api.services.database import create_engine


async def init_db(engine):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def main():
    engine = create_engine(get_settings())
    try:
        await init_db(engine)
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
