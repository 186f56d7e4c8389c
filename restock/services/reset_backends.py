"""
Reset-code backends used by the password reset flow.

A backend owns code issuance and validity. Exactly one is active per
deployment (``RESET_CODE_MODE``):

- NativeOtpBackend: the identity service issues and checks the OTP and the
  verify step yields an authenticated session used to change the password.
- SideChannelCodeBackend: codes live in the ``verification_codes`` table with
  an explicit expiry and a cap on wrong attempts; the password is changed
  through the identity admin API.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from restock.core.config import settings
from restock.core.exceptions import IdentityServiceError
from restock.core.logging import capture_error
from restock.core.security import generate_code, verify_code_hash
from restock.mycelery.worker import send_verification_code
from restock.services.identity import SupabaseIdentityService
from restock.services.verification_codes import VerificationCodeStore, is_code_expired
from restock.logging import get_logger

logger = get_logger("restock.reset")

INVALID_CODE_MESSAGE = "Invalid or expired code"


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class ResetCodeBackend(Protocol):
    async def request_code(self, email: str) -> None:
        ...

    async def verify_code(self, email: str, code: str) -> Any:
        ...

    async def update_password(self, proof: Any, new_password: str) -> None:
        ...


class NativeOtpBackend:
    def __init__(self, identity: SupabaseIdentityService):
        self.identity = identity

    async def request_code(self, email: str) -> None:
        await self.identity.request_code(email)

    async def verify_code(self, email: str, code: str):
        return await self.identity.verify_code(email, code)

    async def update_password(self, proof, new_password: str) -> None:
        await self.identity.update_password(proof, new_password)


@dataclass(frozen=True)
class VerifiedCode:
    email: str
    code: str


class SideChannelCodeBackend:
    def __init__(
        self,
        identity: SupabaseIdentityService,
        session_factory: Callable[[], AsyncSession],
        code_length: int = 6,
        ttl_minutes: int = 30,
        max_attempts: int = 5,
        clock: Callable[[], datetime] = _now_utc,
    ):
        self.identity = identity
        self.session_factory = session_factory
        self.code_length = code_length
        self.ttl_minutes = ttl_minutes
        self.max_attempts = max_attempts
        self.clock = clock

    async def request_code(self, email: str) -> None:
        code = generate_code(self.code_length)
        created_at = self.clock()
        async with self.session_factory() as db:
            await VerificationCodeStore(db).store_code(
                email, code,
                expires_at=created_at + timedelta(minutes=self.ttl_minutes),
                created_at=created_at,
            )
        send_verification_code.delay(email, code)
        logger.info("Verification code issued", email=email)

    async def _check_code(self, email: str, code: str) -> None:
        async with self.session_factory() as db:
            store = VerificationCodeStore(db)
            record = await store.latest_code(email)
            if record is None or is_code_expired(record, self.clock()):
                raise IdentityServiceError(INVALID_CODE_MESSAGE)
            if record.attempts >= self.max_attempts:
                logger.warning("Verification code locked after too many attempts", email=email)
                raise IdentityServiceError(INVALID_CODE_MESSAGE)
            if not verify_code_hash(code, record.code_hash):
                attempts = await store.record_failed_attempt(record)
                logger.warning("Wrong verification code", email=email, attempts=attempts)
                raise IdentityServiceError(INVALID_CODE_MESSAGE)

    async def verify_code(self, email: str, code: str) -> VerifiedCode:
        await self._check_code(email, code)
        return VerifiedCode(email=email, code=code)

    async def update_password(self, proof: VerifiedCode, new_password: str) -> None:
        # the record may have expired between verification and submit
        await self._check_code(proof.email, proof.code)
        await self.identity.admin_update_password(proof.email, new_password)
        try:
            async with self.session_factory() as db:
                await VerificationCodeStore(db).delete_code(proof.email)
        except SQLAlchemyError as e:
            # password already changed; a leftover record expires on its own
            logger.error("Failed to delete used verification code", email=proof.email)
            capture_error(e, tags={"reset_step": "cleanup"})


def build_identity_service() -> SupabaseIdentityService:
    return SupabaseIdentityService(
        base_url=settings.SUPABASE_URL,
        anon_key=settings.SUPABASE_ANON_KEY,
        service_role_key=settings.SUPABASE_SERVICE_ROLE_KEY,
        timeout=settings.IDENTITY_TIMEOUT_SECONDS,
    )


def build_reset_backend(session_factory: Callable[[], AsyncSession]) -> ResetCodeBackend:
    identity = build_identity_service()
    mode = settings.RESET_CODE_MODE.lower()
    if mode == "native":
        return NativeOtpBackend(identity)
    if mode == "side_channel":
        return SideChannelCodeBackend(
            identity,
            session_factory,
            code_length=settings.RESET_CODE_LENGTH,
            ttl_minutes=settings.RESET_CODE_TTL_MINUTES,
            max_attempts=settings.RESET_CODE_MAX_ATTEMPTS,
        )
    raise ValueError(f"Unknown RESET_CODE_MODE: {settings.RESET_CODE_MODE}")
