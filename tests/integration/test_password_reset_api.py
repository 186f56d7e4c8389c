"""
Integration tests for the password reset endpoints.

Flow:
1. POST /api/password-reset
2. POST /api/password-reset/{flow_id}/email
3. POST /api/password-reset/{flow_id}/code
4. POST /api/password-reset/{flow_id}/password
"""

import pytest
from httpx import AsyncClient
from sqlalchemy.exc import OperationalError

from restock.core.exceptions import IdentityServiceError
from tests.factories import VerificationCodeFactory

BASE = "/api/password-reset"


async def open_flow(client: AsyncClient) -> str:
    response = await client.post(BASE)
    assert response.status_code == 201
    return response.json()["flow_id"]


async def flow_at_code(client: AsyncClient, email: str = "a@b.com") -> str:
    flow_id = await open_flow(client)
    response = await client.post(f"{BASE}/{flow_id}/email", json={"email": email})
    assert response.json()["step"] == "code"
    return flow_id


class TestOpenFlow:

    async def test_open_returns_initial_session(self, client: AsyncClient):
        response = await client.post(BASE)

        assert response.status_code == 201
        data = response.json()
        assert data["flow_id"]
        assert data["session"] == {
            "email": "",
            "code": "",
            "step": "email",
            "error": None,
            "is_loading": False,
        }

    async def test_read_flow(self, client: AsyncClient):
        flow_id = await open_flow(client)

        response = await client.get(f"{BASE}/{flow_id}")

        assert response.status_code == 200
        assert response.json()["step"] == "email"

    async def test_unknown_flow(self, client: AsyncClient):
        response = await client.get(f"{BASE}/does-not-exist")

        assert response.status_code == 404


class TestSubmitEmail:

    async def test_sends_code(self, client: AsyncClient, captured_codes):
        flow_id = await open_flow(client)

        response = await client.post(f"{BASE}/{flow_id}/email", json={"email": "a@b.com"})

        assert response.status_code == 200
        data = response.json()
        assert data["step"] == "code"
        assert data["email"] == "a@b.com"
        assert data["error"] is None
        assert len(captured_codes) == 1

    async def test_invalid_email(self, client: AsyncClient, captured_codes):
        flow_id = await open_flow(client)

        response = await client.post(f"{BASE}/{flow_id}/email", json={"email": "not-an-email"})

        assert response.status_code == 422
        assert captured_codes == []

    async def test_delivery_failure_shows_generic_error(self, client: AsyncClient, mocker):
        mocker.patch(
            "restock.services.reset_backends.send_verification_code.delay",
            side_effect=OSError("broker unreachable"),
        )
        flow_id = await open_flow(client)

        response = await client.post(f"{BASE}/{flow_id}/email", json={"email": "a@b.com"})

        assert response.status_code == 200
        assert response.json()["step"] == "email"
        assert response.json()["error"] == "Failed to send verification code"

    async def test_rate_limiting(self, client: AsyncClient, captured_codes):
        """5 requests per 15 minutes per email and IP."""
        for _ in range(5):
            flow_id = await open_flow(client)
            response = await client.post(f"{BASE}/{flow_id}/email", json={"email": "a@b.com"})
            assert response.status_code == 200

        flow_id = await open_flow(client)
        response = await client.post(f"{BASE}/{flow_id}/email", json={"email": "a@b.com"})

        assert response.status_code == 429

    async def test_wrong_step(self, client: AsyncClient, captured_codes):
        flow_id = await flow_at_code(client)

        response = await client.post(f"{BASE}/{flow_id}/email", json={"email": "a@b.com"})

        assert response.status_code == 409


class TestSubmitCode:

    async def test_valid_code(self, client: AsyncClient, captured_codes):
        flow_id = await flow_at_code(client)

        response = await client.post(f"{BASE}/{flow_id}/code", json={"code": captured_codes[0]})

        assert response.status_code == 200
        assert response.json()["step"] == "password"

    async def test_wrong_code(self, client: AsyncClient, captured_codes):
        flow_id = await flow_at_code(client)
        wrong = "000000" if captured_codes[0] != "000000" else "111111"

        response = await client.post(f"{BASE}/{flow_id}/code", json={"code": wrong})

        assert response.status_code == 200
        assert response.json()["step"] == "code"
        assert response.json()["error"] == "Invalid or expired code"

    async def test_non_digit_code_rejected_at_input(self, client: AsyncClient, captured_codes):
        flow_id = await flow_at_code(client)

        response = await client.post(f"{BASE}/{flow_id}/code", json={"code": "12ab56"})

        assert response.status_code == 422

    async def test_too_long_code_rejected_at_input(self, client: AsyncClient, captured_codes):
        flow_id = await flow_at_code(client)

        response = await client.post(f"{BASE}/{flow_id}/code", json={"code": "1234567"})

        assert response.status_code == 422

    async def test_short_code_fails_locally(self, client: AsyncClient, captured_codes):
        flow_id = await flow_at_code(client)

        response = await client.post(f"{BASE}/{flow_id}/code", json={"code": "123"})

        assert response.status_code == 200
        assert response.json()["error"] == "Please enter the 6-digit verification code"

    async def test_code_before_email(self, client: AsyncClient):
        flow_id = await open_flow(client)

        response = await client.post(f"{BASE}/{flow_id}/code", json={"code": "123456"})

        assert response.status_code == 409


class TestSubmitPassword:

    @pytest.fixture
    async def flow_at_password(self, client: AsyncClient, captured_codes) -> str:
        flow_id = await flow_at_code(client)
        response = await client.post(f"{BASE}/{flow_id}/code", json={"code": captured_codes[0]})
        assert response.json()["step"] == "password"
        return flow_id

    async def test_success(self, client: AsyncClient, flow_at_password, identity):
        response = await client.post(
            f"{BASE}/{flow_at_password}/password",
            json={"new_password": "abcdef", "confirm_password": "abcdef"},
        )

        assert response.status_code == 200
        assert response.json()["step"] == "success"
        identity.admin_update_password.assert_awaited_once_with("a@b.com", "abcdef")
        assert "abcdef" not in response.text

    async def test_mismatch(self, client: AsyncClient, flow_at_password, identity):
        response = await client.post(
            f"{BASE}/{flow_at_password}/password",
            json={"new_password": "abcdef", "confirm_password": "abcdeg"},
        )

        assert response.json()["step"] == "password"
        assert response.json()["error"] == "Passwords do not match"
        assert not identity.admin_update_password.called

    async def test_too_short(self, client: AsyncClient, flow_at_password, identity):
        response = await client.post(
            f"{BASE}/{flow_at_password}/password",
            json={"new_password": "abc", "confirm_password": "abc"},
        )

        assert response.json()["error"] == "Password must be at least 6 characters long"
        assert not identity.admin_update_password.called

    async def test_identity_failure(self, client: AsyncClient, flow_at_password, identity):
        identity.admin_update_password.side_effect = IdentityServiceError("New password should be different")

        response = await client.post(
            f"{BASE}/{flow_at_password}/password",
            json={"new_password": "abcdef", "confirm_password": "abcdef"},
        )

        assert response.json()["step"] == "password"
        assert response.json()["error"] == "New password should be different"


class TestNavigation:

    async def test_back_keeps_email(self, client: AsyncClient, captured_codes):
        flow_id = await flow_at_code(client)

        response = await client.post(f"{BASE}/{flow_id}/back")

        assert response.status_code == 200
        assert response.json()["step"] == "email"
        assert response.json()["email"] == "a@b.com"

    async def test_back_from_email(self, client: AsyncClient):
        flow_id = await open_flow(client)

        response = await client.post(f"{BASE}/{flow_id}/back")

        assert response.status_code == 409

    async def test_close_resets_session(self, client: AsyncClient, captured_codes):
        flow_id = await flow_at_code(client)
        await client.post(f"{BASE}/{flow_id}/code", json={"code": "123"})

        response = await client.post(f"{BASE}/{flow_id}/close")

        assert response.json() == {
            "email": "",
            "code": "",
            "step": "email",
            "error": None,
            "is_loading": False,
        }

    async def test_discard(self, client: AsyncClient, registry):
        flow_id = await open_flow(client)

        response = await client.delete(f"{BASE}/{flow_id}")

        assert response.status_code == 204
        assert registry.get(flow_id) is None
        assert (await client.delete(f"{BASE}/{flow_id}")).status_code == 404


class TestStoredCodes:

    async def test_code_from_store_is_accepted(self, client: AsyncClient, captured_codes, db_session):
        flow_id = await flow_at_code(client, email="z@b.com")
        await VerificationCodeFactory.create_async(db_session, email="z@b.com", code="424242")

        response = await client.post(f"{BASE}/{flow_id}/code", json={"code": "424242"})

        assert response.json()["step"] == "password"


class TestInternalFailures:

    async def test_database_error_text_not_exposed(self, client: AsyncClient, captured_codes, mocker):
        flow_id = await flow_at_code(client)
        mocker.patch(
            "restock.services.reset_backends.VerificationCodeStore.latest_code",
            side_effect=OperationalError("SELECT * FROM verification_codes", {}, Exception("no such table")),
        )

        response = await client.post(f"{BASE}/{flow_id}/code", json={"code": "123456"})

        assert response.status_code == 200
        assert response.json()["step"] == "code"
        assert response.json()["error"] == "Invalid or expired code"
        assert "verification_codes" not in response.text


class TestBruteForce:

    def wrong_code(self, captured_codes) -> str:
        return "000000" if captured_codes[0] != "000000" else "111111"

    async def test_forwarded_for_does_not_reset_verify_limit(self, client: AsyncClient, captured_codes):
        """10 verify attempts per 15 minutes, whatever X-Forwarded-For claims."""
        flow_id = await flow_at_code(client)
        wrong = self.wrong_code(captured_codes)

        statuses = []
        for i in range(11):
            response = await client.post(
                f"{BASE}/{flow_id}/code",
                json={"code": wrong},
                headers={"X-Forwarded-For": f"10.0.0.{i}"},
            )
            statuses.append(response.status_code)

        assert statuses[:10] == [200] * 10
        assert statuses[10] == 429

    async def test_code_locked_after_max_attempts(self, client: AsyncClient, captured_codes):
        flow_id = await flow_at_code(client)
        wrong = self.wrong_code(captured_codes)

        for _ in range(5):
            await client.post(f"{BASE}/{flow_id}/code", json={"code": wrong})
        response = await client.post(f"{BASE}/{flow_id}/code", json={"code": captured_codes[0]})

        assert response.json()["step"] == "code"
        assert response.json()["error"] == "Invalid or expired code"

    async def test_new_code_unlocks(self, client: AsyncClient, captured_codes):
        flow_id = await flow_at_code(client)
        wrong = self.wrong_code(captured_codes)
        for _ in range(5):
            await client.post(f"{BASE}/{flow_id}/code", json={"code": wrong})

        await client.post(f"{BASE}/{flow_id}/back")
        await client.post(f"{BASE}/{flow_id}/email", json={"email": "a@b.com"})
        response = await client.post(f"{BASE}/{flow_id}/code", json={"code": captured_codes[-1]})

        assert response.json()["step"] == "password"


class TestAcknowledge:

    async def test_acknowledge_discards_completed_flow(self, client: AsyncClient, captured_codes, registry):
        flow_id = await flow_at_code(client)
        await client.post(f"{BASE}/{flow_id}/code", json={"code": captured_codes[0]})
        await client.post(
            f"{BASE}/{flow_id}/password",
            json={"new_password": "abcdef", "confirm_password": "abcdef"},
        )

        response = await client.post(f"{BASE}/{flow_id}/acknowledge")

        assert response.status_code == 204
        assert registry.get(flow_id) is None
        assert len(registry) == 0

    async def test_acknowledge_before_success(self, client: AsyncClient, captured_codes, registry):
        flow_id = await flow_at_code(client)

        response = await client.post(f"{BASE}/{flow_id}/acknowledge")

        assert response.status_code == 409
        assert registry.get(flow_id) is not None
