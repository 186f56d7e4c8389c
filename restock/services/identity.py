"""
Client for the hosted identity service (Supabase GoTrue).

Only the calls the password reset flow needs are wrapped here. Every failure,
HTTP or transport, surfaces as IdentityServiceError carrying the service's
own message when it sent one.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from restock.core.exceptions import IdentityServiceError
from restock.core.security import normalize_email
from restock.logging import get_logger

logger = get_logger("restock.identity")


@dataclass(frozen=True)
class IdentitySession:
    access_token: str
    refresh_token: Optional[str] = None
    user_id: Optional[str] = None


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text.strip()
    if isinstance(body, dict):
        for key in ("msg", "error_description", "message", "error"):
            if body.get(key):
                return str(body[key])
    return ""


class SupabaseIdentityService:
    def __init__(
        self,
        base_url: str,
        anon_key: str,
        service_role_key: str = "",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.anon_key = anon_key
        self.service_role_key = service_role_key
        self.timeout = timeout
        self.transport = transport

    def _headers(self, bearer: Optional[str] = None, admin: bool = False) -> Dict[str, str]:
        key = self.service_role_key if admin else self.anon_key
        return {
            "apikey": key,
            "Authorization": f"Bearer {bearer or key}",
            "Content-Type": "application/json",
        }

    async def _request(self, method: str, path: str, headers: Dict[str, str], **kwargs) -> Any:
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, timeout=self.timeout, transport=self.transport
            ) as client:
                response = await client.request(method, path, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            logger.warning("Identity service unreachable", path=path, error=str(e))
            # empty message: the flow shows its own per-step text
            raise IdentityServiceError("") from e

        if response.is_error:
            message = _error_message(response)
            logger.warning("Identity service call failed", path=path, status_code=response.status_code)
            raise IdentityServiceError(message, status_code=response.status_code)

        if not response.content:
            return None
        return response.json()

    async def request_code(self, email: str) -> None:
        await self._request(
            "POST", "/auth/v1/recover",
            headers=self._headers(),
            json={"email": normalize_email(email)},
        )

    async def verify_code(self, email: str, code: str) -> IdentitySession:
        body = await self._request(
            "POST", "/auth/v1/verify",
            headers=self._headers(),
            json={"type": "recovery", "email": normalize_email(email), "token": code},
        )
        if not body or not body.get("access_token"):
            raise IdentityServiceError("Identity service returned no session")
        user = body.get("user") or {}
        return IdentitySession(
            access_token=body["access_token"],
            refresh_token=body.get("refresh_token"),
            user_id=user.get("id"),
        )

    async def update_password(self, session: IdentitySession, new_password: str) -> None:
        await self._request(
            "PUT", "/auth/v1/user",
            headers=self._headers(bearer=session.access_token),
            json={"password": new_password},
        )

    async def find_user_id(self, email: str) -> str:
        email = normalize_email(email)
        body = await self._request(
            "GET", "/auth/v1/admin/users",
            headers=self._headers(admin=True),
            params={"filter": email},
        )
        users = body.get("users", []) if isinstance(body, dict) else (body or [])
        for user in users:
            if normalize_email(user.get("email", "")) == email:
                return user["id"]
        raise IdentityServiceError("User not found")

    async def admin_update_password(self, email: str, new_password: str) -> None:
        user_id = await self.find_user_id(email)
        await self._request(
            "PUT", f"/auth/v1/admin/users/{user_id}",
            headers=self._headers(admin=True),
            json={"password": new_password},
        )
