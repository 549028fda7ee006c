# activation_api/core/verify.py

import asyncio
import os

from activation_api.core.config import get_settings
from activation_api.models.activation_code import CODE_LENGTH
from activation_api.services.code_store import CodeStore
from activation_api.services.database import create_engine, create_session_factory
from activation_api.services.redemption import STORAGE_ERRORS, is_well_formed


def _mark(ok):
    return "ok" if ok else "FAIL"


async def verify_system():
    print("Environment:")
    for name in ("POSTGRES_URL", "DATABASE_URL"):
        print(f"  {name}: {'set' if os.getenv(name) else 'not set'}")

    settings = get_settings()
    if not settings.database_url:
        print("No database connection string. Set POSTGRES_URL or DATABASE_URL.")
        return False

    engine = create_engine(settings)
    store = CodeStore(create_session_factory(engine))
    try:
        server_time, version = await store.ping()
        print(f"Database: connected ({version}, server time {server_time})")

        stats = await store.stats()
        rate = (stats.used / stats.total * 100) if stats.total else 0
        print(f"Codes: total={stats.total} used={stats.used} available={stats.available} usage={rate:.2f}%")
        if stats.total == 0:
            print("Warning: no activation codes, run python -m activation_api.core.import_codes")

        print("Samples:")
        for code in await store.sample_codes():
            print(
                f"  {code}: length {_mark(len(code) == CODE_LENGTH)}, "
                f"format {_mark(is_well_formed(code))}, lowercase {_mark(code == code.lower())}"
            )

        print("Table activation_codes:")
        for column in await store.columns():
            nullable = "nullable" if column["nullable"] else "not null"
            print(f"  - {column['name']}: {column['type']} ({nullable})")
        return True
    except STORAGE_ERRORS as e:
        print(f"Database connection failed: {e}")
        return False
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(verify_system())
