"""API tests driving the gateway over HTTP with a manual clock."""

from datetime import timedelta

import pytest

from tests.conftest import EMPLOYEE_PASSWORD, USER_PASSWORD

PAYMENT = {
    "amount": "250.00",
    "currency": "EUR",
    "provider": "SEPA",
    "recipient_account": "DE89370400440532013000",
    "swift_code": "COBADEFFXXX",
    "notes": "Rent for January",
}


def _bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


async def _csrf(client, token: str) -> str:
    response = await client.get("/auth/csrf-token", headers=_bearer(token))
    assert response.status_code == 200
    return response.json()["csrf_token"]


async def _protected_headers(client, token: str) -> dict[str, str]:
    return {**_bearer(token), "X-CSRF-Token": await _csrf(client, token)}


async def _employee_login(client) -> str:
    response = await client.post(
        "/auth/employee-login", json={"username": "bob", "password": EMPLOYEE_PASSWORD}
    )
    assert response.status_code == 200
    return response.json()["token"]


class TestAliceScenario:
    @pytest.mark.asyncio
    async def test_register_lockout_payment_and_review(self, async_client, clock, employee):
        # Registration
        response = await async_client.post(
            "/auth/register",
            json={
                "full_name": "Alice Smith",
                "id_number": "9001015009087",
                "account_number": "1234567890",
                "username": "alice",
                "password": USER_PASSWORD,
            },
        )
        assert response.status_code == 201
        assert response.json()["message"] == "User registered successfully"
        alice_id = response.json()["user_id"]

        # Five wrong passwords, then the correct one is refused while locked
        for _ in range(5):
            response = await async_client.post(
                "/auth/login", json={"username": "alice", "password": "Wr0ng!Pass"}
            )
            assert response.status_code == 401
            assert response.json() == {"success": False, "message": "Invalid credentials"}

        response = await async_client.post(
            "/auth/login", json={"username": "alice", "password": USER_PASSWORD}
        )
        assert response.status_code == 423
        assert response.json()["message"] == "Account temporarily locked. Please try again later."

        # Lockout lapses after 30 minutes
        clock.advance(timedelta(minutes=31))
        response = await async_client.post(
            "/auth/login", json={"username": "alice", "password": USER_PASSWORD}
        )
        assert response.status_code == 200
        login = response.json()
        assert login["token_type"] == "bearer"
        assert login["expires_in"] == 86400
        assert login["profile"]["id"] == alice_id
        assert login["profile"]["kind"] == "user"
        assert "password_hash" not in login["profile"]
        user_token = login["token"]

        # Payment with session and CSRF token
        headers = await _protected_headers(async_client, user_token)
        response = await async_client.post("/user/payments", json=PAYMENT, headers=headers)
        assert response.status_code == 201
        payment = response.json()
        assert payment["transaction"]["status"] == "pending"
        assert payment["transaction"]["amount"] == "250.00"
        tx_id = payment["transaction_id"]

        # The CSRF token cannot be replayed
        response = await async_client.post("/user/payments", json=PAYMENT, headers=headers)
        assert response.status_code == 403
        assert response.json()["message"] == "CSRF token expired or already used"

        # Employee sees the pending payment
        response = await async_client.post(
            "/auth/employee-login", json={"username": "bob", "password": EMPLOYEE_PASSWORD}
        )
        assert response.status_code == 200
        employee_token = response.json()["token"]
        assert response.json()["profile"]["employee_number"] == "EMP100"

        response = await async_client.get(
            "/admin/transactions", params={"status": "pending"}, headers=_bearer(employee_token)
        )
        assert response.status_code == 200
        assert [tx["id"] for tx in response.json()["transactions"]] == [tx_id]

        # Approve once; a second decision conflicts
        response = await async_client.put(
            f"/admin/transactions/{tx_id}/approve",
            headers=await _protected_headers(async_client, employee_token),
        )
        assert response.status_code == 200
        approved = response.json()["transaction"]
        assert approved["status"] == "approved"
        assert approved["processed_by"] == employee.id

        response = await async_client.put(
            f"/admin/transactions/{tx_id}/approve",
            headers=await _protected_headers(async_client, employee_token),
        )
        assert response.status_code == 409
        assert response.json()["message"] == "Transaction is not pending"

        # Alice sees the outcome
        response = await async_client.get("/user/transactions", headers=_bearer(user_token))
        assert response.json()["transactions"][0]["status"] == "approved"


class TestAuthApi:
    @pytest.mark.asyncio
    async def test_register_validation_lists_fields(self, async_client):
        response = await async_client.post(
            "/auth/register",
            json={
                "full_name": "Alice Smith",
                "id_number": "12345",
                "account_number": "1234567890",
                "username": "alice",
                "password": "password",
            },
        )

        assert response.status_code == 400
        assert response.json()["message"] == (
            "Validation failed: Invalid id number, Invalid password"
        )

    @pytest.mark.asyncio
    async def test_register_duplicate_username(self, async_client, user):
        response = await async_client.post(
            "/auth/register",
            json={
                "full_name": "Alice Other",
                "id_number": "8501015009088",
                "account_number": "99887766554",
                "username": "alice",
                "password": USER_PASSWORD,
            },
        )

        assert response.status_code == 409
        assert response.json()["message"] == "Username already exists"

    @pytest.mark.asyncio
    async def test_login_missing_field(self, async_client):
        response = await async_client.post("/auth/login", json={"username": "alice"})

        assert response.status_code == 400
        assert response.json() == {
            "success": False,
            "message": "Validation failed: Invalid password",
        }

    @pytest.mark.asyncio
    async def test_user_cannot_use_employee_login(self, async_client, user):
        response = await async_client.post(
            "/auth/employee-login", json={"username": "alice", "password": USER_PASSWORD}
        )

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_csrf_token_requires_session(self, async_client):
        response = await async_client.get("/auth/csrf-token")

        assert response.status_code == 401
        assert response.json()["message"] == "Authorization token required"
        assert response.headers["WWW-Authenticate"] == "Bearer"

    @pytest.mark.asyncio
    async def test_expired_session_rejected(self, async_client, clock, user_token):
        clock.advance(timedelta(hours=24))

        response = await async_client.get("/user/transactions", headers=_bearer(user_token))

        assert response.status_code == 401
        assert response.json()["message"] == "Invalid or expired token"

    @pytest.mark.asyncio
    async def test_garbage_token_rejected(self, async_client):
        response = await async_client.get("/user/transactions", headers=_bearer("not.a.token"))

        assert response.status_code == 401


class TestPaymentsApi:
    @pytest.mark.asyncio
    async def test_missing_csrf_token(self, async_client, user_token):
        response = await async_client.post(
            "/user/payments", json=PAYMENT, headers=_bearer(user_token)
        )

        assert response.status_code == 403
        assert response.json()["message"] == "CSRF token required"

    @pytest.mark.asyncio
    async def test_forged_csrf_token(self, async_client, user_token):
        response = await async_client.post(
            "/user/payments",
            json=PAYMENT,
            headers={**_bearer(user_token), "X-CSRF-Token": "forged"},
        )

        assert response.status_code == 403
        assert response.json()["message"] == "Invalid CSRF token"

    @pytest.mark.asyncio
    async def test_employee_cannot_pay_and_keeps_csrf_token(self, async_client, employee_token):
        """Authorization is checked before the CSRF token is spent."""
        csrf = await _csrf(async_client, employee_token)

        response = await async_client.post(
            "/user/payments",
            json=PAYMENT,
            headers={**_bearer(employee_token), "X-CSRF-Token": csrf},
        )
        assert response.status_code == 403
        assert response.json()["message"] == "User access required"

        response = await async_client.put(
            "/admin/transactions/999/approve",
            headers={**_bearer(employee_token), "X-CSRF-Token": csrf},
        )
        assert response.status_code == 404
        assert response.json()["message"] == "Transaction not found"

    @pytest.mark.asyncio
    async def test_invalid_payment_fields(self, async_client, user_token):
        headers = await _protected_headers(async_client, user_token)

        response = await async_client.post(
            "/user/payments",
            json={**PAYMENT, "amount": "10.999", "swift_code": "short"},
            headers=headers,
        )

        assert response.status_code == 400
        assert response.json()["message"] == (
            "Validation errors: Invalid amount, Invalid swift code"
        )

    @pytest.mark.asyncio
    async def test_numeric_amount_accepted(self, async_client, user_token):
        headers = await _protected_headers(async_client, user_token)

        response = await async_client.post(
            "/user/payments", json={**PAYMENT, "amount": 99.5}, headers=headers
        )

        assert response.status_code == 201
        assert response.json()["transaction"]["amount"] == "99.5"

    @pytest.mark.asyncio
    async def test_missing_body_field(self, async_client, user_token):
        headers = await _protected_headers(async_client, user_token)
        body = {key: value for key, value in PAYMENT.items() if key != "currency"}

        response = await async_client.post("/user/payments", json=body, headers=headers)

        assert response.status_code == 400
        assert response.json()["message"] == "Validation failed: Invalid currency"

    @pytest.mark.asyncio
    async def test_listing_is_paged_and_private(
        self, async_client, services, user, user_token, clock
    ):
        for amount in ("1", "2", "3"):
            await services.transactions.create_payment(
                user_id=user.id, ip_address="10.0.0.1", **{**PAYMENT, "amount": amount}
            )
            clock.advance(timedelta(seconds=1))

        response = await async_client.get(
            "/user/transactions", params={"page": 2, "limit": 2}, headers=_bearer(user_token)
        )

        assert response.status_code == 200
        data = response.json()
        assert data["page"] == 2
        assert [tx["amount"] for tx in data["transactions"]] == ["1"]

    @pytest.mark.asyncio
    async def test_user_cannot_list_admin_transactions(self, async_client, user_token):
        response = await async_client.get("/admin/transactions", headers=_bearer(user_token))

        assert response.status_code == 403
        assert response.json()["message"] == "Employee access required"


class TestAdminApi:
    @pytest.mark.asyncio
    async def test_deny_with_reason(self, async_client, services, user, employee_token):
        tx = (
            await services.transactions.create_payment(
                user_id=user.id, ip_address="10.0.0.1", **PAYMENT
            )
        ).value

        response = await async_client.put(
            f"/admin/transactions/{tx.id}/deny",
            json={"reason": "Recipient on watch list"},
            headers=await _protected_headers(async_client, employee_token),
        )

        assert response.status_code == 200
        assert response.json()["message"] == "Transaction denied successfully"
        assert response.json()["transaction"]["notes"] == (
            "Rent for January | Denied: Recipient on watch list"
        )

    @pytest.mark.asyncio
    async def test_deny_without_reason(self, async_client, services, user, employee_token):
        tx = (
            await services.transactions.create_payment(
                user_id=user.id, ip_address="10.0.0.1", **PAYMENT
            )
        ).value

        response = await async_client.put(
            f"/admin/transactions/{tx.id}/deny",
            json={},
            headers=await _protected_headers(async_client, employee_token),
        )

        assert response.status_code == 400
        assert response.json()["message"] == "Denial reason is required"

    @pytest.mark.asyncio
    async def test_security_log_cleanup(self, async_client, services, clock, employee):
        await services.security_log.log("OLD_EVENT", "10.0.0.1")
        old_entries = len(await services.security_log.list_recent())
        clock.advance(timedelta(days=31))

        # Sessions last a day, so sign in again after the clock moves
        token = await _employee_login(async_client)
        headers = await _protected_headers(async_client, token)

        response = await async_client.post(
            "/admin/security-logs/cleanup", json={"retention_days": 30}, headers=headers
        )

        assert response.status_code == 200
        assert response.json()["deleted"] == old_entries

    @pytest.mark.asyncio
    async def test_unknown_status_filter(self, async_client, employee_token):
        response = await async_client.get(
            "/admin/transactions", params={"status": "lost"}, headers=_bearer(employee_token)
        )

        assert response.status_code == 400
        assert response.json()["message"] == "Validation failed: Invalid status"

    @pytest.mark.asyncio
    async def test_lock_and_unlock_user_account(self, async_client, user, employee_token):
        response = await async_client.put(
            f"/admin/users/{user.id}/toggle",
            json={"lock": True, "reason": "Chargeback dispute"},
            headers=await _protected_headers(async_client, employee_token),
        )
        assert response.status_code == 200
        assert response.json()["message"] == "User account deactivated successfully"
        assert response.json()["profile"]["username"] == "alice"

        response = await async_client.post(
            "/auth/login", json={"username": "alice", "password": USER_PASSWORD}
        )
        assert response.status_code == 401
        assert response.json()["message"] == "Invalid credentials"

        response = await async_client.put(
            f"/admin/users/{user.id}/toggle",
            json={"lock": False},
            headers=await _protected_headers(async_client, employee_token),
        )
        assert response.status_code == 200
        assert response.json()["message"] == "User account activated successfully"

        response = await async_client.post(
            "/auth/login", json={"username": "alice", "password": USER_PASSWORD}
        )
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_toggle_unknown_employee(self, async_client, employee_token):
        response = await async_client.put(
            "/admin/users/999/toggle",
            json={"lock": True, "kind": "employee"},
            headers=await _protected_headers(async_client, employee_token),
        )

        assert response.status_code == 404
        assert response.json()["message"] == "Employee not found"

    @pytest.mark.asyncio
    async def test_toggle_requires_csrf_token(self, async_client, user, employee_token):
        response = await async_client.put(
            f"/admin/users/{user.id}/toggle",
            json={"lock": True},
            headers=_bearer(employee_token),
        )

        assert response.status_code == 403
        assert response.json()["message"] == "CSRF token required"

    @pytest.mark.asyncio
    async def test_user_cannot_toggle_accounts(self, async_client, user, user_token):
        response = await async_client.put(
            f"/admin/users/{user.id}/toggle",
            json={"lock": True},
            headers=await _protected_headers(async_client, user_token),
        )

        assert response.status_code == 403
        assert response.json()["message"] == "Employee access required"
