"""
Password reset flow controller.

Walks one user through EMAIL -> CODE -> PASSWORD -> SUCCESS. Credential
changes are delegated to a reset-code backend; this module only owns the
session state and turns backend outcomes into transitions and error text.

Rules:
- ``step`` advances only after the current step's backend call succeeds.
- ``is_loading`` is True exactly while that call is pending.
- Local validation failures never reach the backend.
- ``close()`` returns to a fresh session; the outcome of a call still in
  flight at that moment is discarded.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from restock.core.exceptions import (
    FlowStateError,
    IdentityServiceError,
    ResetValidationError,
)
from restock.core.logging import capture_error
from restock.logging import get_logger

logger = get_logger("restock.reset")


class ResetStep(str, Enum):
    EMAIL = "email"
    CODE = "code"
    PASSWORD = "password"
    SUCCESS = "success"


NEXT_STEP = {
    ResetStep.EMAIL: ResetStep.CODE,
    ResetStep.CODE: ResetStep.PASSWORD,
    ResetStep.PASSWORD: ResetStep.SUCCESS,
}

PREVIOUS_STEP = {
    ResetStep.CODE: ResetStep.EMAIL,
    ResetStep.PASSWORD: ResetStep.CODE,
}

FALLBACK_MESSAGES = {
    ResetStep.EMAIL: "Failed to send verification code",
    ResetStep.CODE: "Invalid or expired code",
    ResetStep.PASSWORD: "Failed to reset password",
}

_NON_TERMINAL = {step for step in ResetStep if step is not ResetStep.SUCCESS}
if set(NEXT_STEP) != _NON_TERMINAL or set(FALLBACK_MESSAGES) != _NON_TERMINAL:
    raise RuntimeError("Every non-terminal reset step needs a transition and a fallback message")


@dataclass
class ResetSession:
    email: str = ""
    code: str = ""
    new_password: str = ""
    confirm_password: str = ""
    step: ResetStep = ResetStep.EMAIL
    error: Optional[str] = None
    is_loading: bool = False


class PasswordResetFlow:
    def __init__(self, backend, code_length: int = 6, password_min_length: int = 6):
        self.backend = backend
        self.code_length = code_length
        self.password_min_length = password_min_length
        self.session = ResetSession()
        self._proof: Any = None

    # ---- input -------------------------------------------------------

    def set_email(self, value: str) -> None:
        self.session.email = value

    def set_code(self, value: str) -> bool:
        """Replace the whole code; anything but up to N ASCII digits is rejected."""
        if not re.fullmatch(r"[0-9]{0,%d}" % self.code_length, value):
            return False
        self.session.code = value
        return True

    def set_code_digit(self, index: int, value: str) -> bool:
        """Digit-grid input: one digit (or empty to erase) at ``index``."""
        if value and not re.fullmatch(r"[0-9]", value):
            return False
        digits = list(self.session.code)
        if not 0 <= index < self.code_length or index > len(digits):
            return False
        if index == len(digits):
            if value:
                digits.append(value)
        elif value:
            digits[index] = value
        else:
            del digits[index]
        self.session.code = "".join(digits)
        return True

    def paste_code(self, text: str) -> bool:
        text = (text or "").strip()
        if not re.fullmatch(r"[0-9]{%d}" % self.code_length, text):
            return False
        self.session.code = text
        return True

    def set_passwords(self, new_password: str, confirm_password: str) -> None:
        self.session.new_password = new_password
        self.session.confirm_password = confirm_password

    # ---- validation --------------------------------------------------

    def validate_code(self, code: str) -> None:
        if not re.fullmatch(r"[0-9]{%d}" % self.code_length, code):
            raise ResetValidationError(f"Please enter the {self.code_length}-digit verification code")

    def validate_passwords(self, new_password: str, confirm_password: str) -> None:
        if new_password != confirm_password:
            raise ResetValidationError("Passwords do not match")
        if len(new_password) < self.password_min_length:
            raise ResetValidationError(
                f"Password must be at least {self.password_min_length} characters long"
            )

    # ---- transitions -------------------------------------------------

    def require_step(self, step: ResetStep) -> None:
        if self.session.is_loading:
            raise FlowStateError("A request is already in progress")
        if self.session.step is not step:
            raise FlowStateError(
                f"Cannot submit '{step.value}' while the flow is at '{self.session.step.value}'"
            )

    async def _run_step(
        self,
        step: ResetStep,
        call: Callable[[], Awaitable[Any]],
        on_success: Optional[Callable[[Any], None]] = None,
    ) -> bool:
        session = self.session
        session.error = None
        session.is_loading = True
        try:
            result = await call()
        except IdentityServiceError as e:
            session.error = e.message or FALLBACK_MESSAGES[step]
            logger.warning("Password reset step failed", step=step.value, error=session.error)
            return False
        except Exception as e:
            session.error = FALLBACK_MESSAGES[step]
            logger.error("Unexpected error in password reset step", step=step.value, error=type(e).__name__)
            capture_error(e, tags={"reset_step": step.value})
            return False
        finally:
            session.is_loading = False

        if session is not self.session:
            logger.info("Discarding outcome of a closed password reset flow", step=step.value)
            return False

        if on_success is not None:
            on_success(result)
        session.step = NEXT_STEP[step]
        return True

    async def submit_email(self) -> bool:
        self.require_step(ResetStep.EMAIL)
        email = self.session.email.strip()
        if not email:
            self.session.error = "Please enter your email address"
            return False

        ok = await self._run_step(ResetStep.EMAIL, lambda: self.backend.request_code(email))
        if ok:
            logger.info("Password reset code requested", email=email)
        return ok

    async def submit_code(self) -> bool:
        self.require_step(ResetStep.CODE)
        session = self.session
        try:
            self.validate_code(session.code)
        except ResetValidationError as e:
            session.error = e.message
            return False

        def keep_proof(proof):
            self._proof = proof

        return await self._run_step(
            ResetStep.CODE,
            lambda: self.backend.verify_code(session.email.strip(), session.code),
            on_success=keep_proof,
        )

    async def submit_password(self) -> bool:
        self.require_step(ResetStep.PASSWORD)
        session = self.session
        try:
            self.validate_passwords(session.new_password, session.confirm_password)
        except ResetValidationError as e:
            session.error = e.message
            return False

        proof = self._proof

        def clear_secrets(_):
            session.new_password = ""
            session.confirm_password = ""
            self._proof = None

        ok = await self._run_step(
            ResetStep.PASSWORD,
            lambda: self.backend.update_password(proof, session.new_password),
            on_success=clear_secrets,
        )
        if ok:
            logger.great("Password reset completed", email=session.email)
        return ok

    def back(self) -> None:
        session = self.session
        if session.is_loading:
            raise FlowStateError("A request is already in progress")
        if session.step not in PREVIOUS_STEP:
            raise FlowStateError(f"Cannot go back from '{session.step.value}'")
        if session.step is ResetStep.PASSWORD:
            self._proof = None
        session.step = PREVIOUS_STEP[session.step]
        session.error = None

    def close(self) -> None:
        self.session = ResetSession()
        self._proof = None

    def acknowledge(self) -> None:
        self.require_step(ResetStep.SUCCESS)
        self.close()
