"""
Keyed store for side-channel password reset codes.

Records are keyed by email. Storing a code replaces any earlier record for
the same email, which also resets its failed-attempt count. Lookups never
check expiry; callers must use ``is_code_expired``.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from restock.core.security import hash_code, normalize_email
from restock.models.verification_code import VerificationCode


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive timestamps (e.g. from SQLite) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def code_expiry(created_at: datetime, ttl_minutes: int) -> datetime:
    return as_utc(created_at) + timedelta(minutes=ttl_minutes)


def is_code_expired(record: VerificationCode, now: Optional[datetime] = None) -> bool:
    """
    A record is valid only while ``now < expires_at``.

    The boundary instant itself counts as expired.
    """
    now = as_utc(now or _now_utc())
    return not now < as_utc(record.expires_at)


class VerificationCodeStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def store_code(self, email: str, code: str, expires_at: datetime,
                         created_at: Optional[datetime] = None) -> VerificationCode:
        email = normalize_email(email)
        await self.db.execute(delete(VerificationCode).where(VerificationCode.email == email))

        record = VerificationCode(
            email=email,
            code_hash=hash_code(code),
            created_at=created_at or _now_utc(),
            expires_at=expires_at,
        )
        self.db.add(record)
        await self.db.commit()
        await self.db.refresh(record)
        return record

    async def lookup_code(self, email: str, code: str) -> Optional[VerificationCode]:
        result = await self.db.execute(
            select(VerificationCode)
            .where(
                VerificationCode.email == normalize_email(email),
                VerificationCode.code_hash == hash_code(code),
            )
            .order_by(VerificationCode.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def delete_code(self, email: str) -> int:
        result = await self.db.execute(
            delete(VerificationCode).where(VerificationCode.email == normalize_email(email))
        )
        await self.db.commit()
        return result.rowcount or 0

    async def latest_code(self, email: str) -> Optional[VerificationCode]:
        result = await self.db.execute(
            select(VerificationCode)
            .where(VerificationCode.email == normalize_email(email))
            .order_by(VerificationCode.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def record_failed_attempt(self, record: VerificationCode) -> int:
        await self.db.execute(
            update(VerificationCode)
            .where(VerificationCode.id == record.id)
            .values(attempts=VerificationCode.attempts + 1)
        )
        await self.db.commit()
        await self.db.refresh(record)
        return record.attempts
