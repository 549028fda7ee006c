# activation_api/services/redemption.py
"""Single-use activation code redemption.

A code moves from available to redeemed exactly once. The only write is the
store's conditional UPDATE, which acts as the arbiter when several requests
race for the same code; there are no locks or queues in this process. When
that update matches nothing, a follow-up read explains why (unknown code or
already redeemed). That read is not atomic with the update, so what it reports
is best-effort diagnostics only.
"""

import asyncio
import enum
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union

from sqlalchemy.exc import SQLAlchemyError

from activation_api.models.activation_code import CODE_LENGTH
from activation_api.services.database import DatabaseNotConfigured

logger = logging.getLogger(__name__)

CODE_PATTERN = re.compile(r"^[0-9a-z]{%d}$" % CODE_LENGTH)
ANONYMOUS = "anonymous"

STORAGE_ERRORS = (SQLAlchemyError, OSError, asyncio.TimeoutError, DatabaseNotConfigured)


class FailureKind(str, enum.Enum):
    EMPTY_CODE = "emptyCode"
    BAD_FORMAT = "badFormat"
    INVALID = "invalid"
    ALREADY_USED = "alreadyUsed"
    INTERNAL = "internal"


class ValidationError(Exception):
    def __init__(self, kind: FailureKind, message: str):
        super().__init__(message)
        self.kind = kind


@dataclass(frozen=True)
class RedeemSuccess:
    code: str
    used_by: str
    used_at: datetime
    ok = True


@dataclass(frozen=True)
class RedeemFailure:
    kind: FailureKind
    code: Optional[str] = None
    used_by: Optional[str] = None
    used_at: Optional[datetime] = None
    detail: Optional[str] = None
    ok = False


RedeemResult = Union[RedeemSuccess, RedeemFailure]


def is_well_formed(code: str) -> bool:
    return bool(CODE_PATTERN.match(code))


def normalize_code(value) -> str:
    """Trim and lowercase a user supplied code, rejecting anything malformed."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(FailureKind.EMPTY_CODE, "activation code is required")
    code = value.strip().lower()
    if not is_well_formed(code):
        raise ValidationError(FailureKind.BAD_FORMAT, "activation code must be %d characters of [0-9a-z]" % CODE_LENGTH)
    return code


def normalize_requester(value) -> str:
    """Requester identity as given; numeric ids are kept as their string form."""
    if value is None:
        return ANONYMOUS
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        value = str(value)
    if not isinstance(value, str):
        raise ValidationError(FailureKind.BAD_FORMAT, "user id must be a string or a number")
    if not value.strip():
        return ANONYMOUS
    return value


class RedemptionEngine:
    def __init__(self, store):
        self.store = store

    async def redeem(self, code_input, requester_id=None) -> RedeemResult:
        try:
            code = normalize_code(code_input)
            used_by = normalize_requester(requester_id)
        except ValidationError as e:
            logger.info("Rejected activation input %r: %s", code_input, e)
            return RedeemFailure(kind=e.kind, detail=str(e))

        logger.info("Redeeming code %s for %s", code, used_by)

        try:
            row = await self.store.try_redeem(code, used_by)
            if row is not None:
                logger.info("Code %s redeemed by %s", row.code, row.used_by)
                return RedeemSuccess(code=row.code, used_by=row.used_by, used_at=row.used_at)

            existing = await self.store.lookup(code)
        except STORAGE_ERRORS:
            logger.exception("Storage error while redeeming code %s", code)
            return RedeemFailure(kind=FailureKind.INTERNAL, code=code, detail="internal server error")

        if existing is None:
            logger.info("Code %s does not exist", code)
            return RedeemFailure(kind=FailureKind.INVALID, code=code, detail="activation code is invalid")

        if existing.is_used:
            logger.info("Code %s already used by %s", code, existing.used_by)
            return RedeemFailure(
                kind=FailureKind.ALREADY_USED,
                code=code,
                used_by=existing.used_by,
                used_at=existing.used_at,
                detail="activation code already used",
            )

        # Update matched nothing yet the row reads as available
        logger.warning("Code %s was not redeemed but is still available", code)
        return RedeemFailure(kind=FailureKind.INTERNAL, code=code, detail="activation failed, please retry")
