# activation_api/services/code_store.py

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import case, func, inspect, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.future import select

from activation_api.models.activation_code import ActivationCode


@dataclass(frozen=True)
class RedeemedRow:
    code: str
    used_by: Optional[str]
    used_at: Optional[datetime]


@dataclass(frozen=True)
class CodeStats:
    total: int
    used: int
    available: int


_INSERT_BY_DIALECT = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class CodeStore:
    """Persistence for activation codes.

    Each call checks out its own session (and with it a pooled connection)
    and gives it back when the call returns or raises. Errors from the
    driver are not caught here.
    """

    def __init__(self, session_factory):
        self.session_factory = session_factory

    # Retrieve an activation code by its code value
    async def lookup(self, code: str) -> Optional[ActivationCode]:
        async with self.session_factory() as session:
            return await session.get(ActivationCode, code)

    async def try_redeem(self, code: str, used_by: str) -> Optional[RedeemedRow]:
        """Mark ``code`` used by ``used_by`` if and only if it is still unused.

        Runs as a single conditional UPDATE ... RETURNING, so two callers can
        never both see a row come back for the same code. Returns ``None``
        when no row matched (unknown code or already redeemed).
        """
        stmt = (
            update(ActivationCode)
            .where(ActivationCode.code == code, ActivationCode.is_used.is_(False))
            .values(is_used=True, used_at=func.now(), used_by=used_by)
            .returning(ActivationCode.code, ActivationCode.used_by, ActivationCode.used_at)
            .execution_options(synchronize_session=False)
        )
        async with self.session_factory() as session:
            async with session.begin():
                row = (await session.execute(stmt)).first()
        if row is None:
            return None
        return RedeemedRow(code=row.code, used_by=row.used_by, used_at=row.used_at)

    async def insert_codes(self, codes: Iterable[str]) -> int:
        """Insert codes in their initial state, skipping ones already stored."""
        values = [{"code": code} for code in codes]
        if not values:
            return 0
        async with self.session_factory() as session:
            async with session.begin():
                insert = _INSERT_BY_DIALECT.get(session.bind.dialect.name)
                if insert is None:
                    raise ValueError(f"bulk insert skipping duplicates is not available for the {session.bind.dialect.name} dialect")
                stmt = insert(ActivationCode.__table__).values(values).on_conflict_do_nothing(index_elements=["code"])
                result = await session.execute(stmt)
        return result.rowcount

    async def count(self) -> int:
        async with self.session_factory() as session:
            result = await session.execute(select(func.count()).select_from(ActivationCode))
            return result.scalar()

    async def stats(self) -> CodeStats:
        used_expr = func.count(case((ActivationCode.is_used.is_(True), 1)))
        available_expr = func.count(case((ActivationCode.is_used.is_(False), 1)))
        async with self.session_factory() as session:
            result = await session.execute(select(func.count(), used_expr, available_expr).select_from(ActivationCode))
            total, used, available = result.one()
        return CodeStats(total=total or 0, used=used or 0, available=available or 0)

    async def recent_redemptions(self, limit: int = 5) -> List[RedeemedRow]:
        stmt = (
            select(ActivationCode.code, ActivationCode.used_by, ActivationCode.used_at)
            .where(ActivationCode.used_at.is_not(None))
            .order_by(ActivationCode.used_at.desc())
            .limit(limit)
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return [RedeemedRow(code=r.code, used_by=r.used_by, used_at=r.used_at) for r in result]

    async def sample_codes(self, limit: int = 3) -> List[str]:
        async with self.session_factory() as session:
            result = await session.execute(select(ActivationCode.code).limit(limit))
            return list(result.scalars())

    async def ping(self) -> Tuple[object, str]:
        """Round-trip to the database; returns its clock and version string."""
        async with self.session_factory() as session:
            server_time = (await session.execute(select(func.now()))).scalar()
            version_info = session.bind.dialect.server_version_info or ()
            version = f"{session.bind.dialect.name} {'.'.join(str(v) for v in version_info)}".strip()
        return server_time, version

    async def columns(self) -> List[dict]:
        """Column name, type and nullability of the codes table as the database reports them."""
        async with self.session_factory() as session:
            conn = await session.connection()
            return await conn.run_sync(
                lambda sync_conn: inspect(sync_conn).get_columns(ActivationCode.__tablename__)
            )
