"""Tests for the PostgreSQL repositories.

Skipped unless TEST_DATABASE_URL is set or testcontainers can start PostgreSQL.
"""

import asyncio
from datetime import timedelta
from decimal import Decimal

import pytest

from deltapay.models import PrincipalKind, User
from deltapay.repositories import CsrfConsumeStatus
from deltapay.services.errors import ConflictError, ErrorKind
from tests.conftest import EMPLOYEE_PASSWORD, START_TIME, USER_PASSWORD

pytestmark = pytest.mark.database

IP = "10.0.0.1"

PAYMENT = {
    "amount": "10.00",
    "currency": "USD",
    "provider": "SWIFT",
    "recipient_account": "GB29NWBK60161331926819",
    "swift_code": "NWBKGB2L",
}


async def _register_alice(services):
    outcome = await services.credentials.register_user(
        full_name="Alice Smith",
        id_number="9001015009087",
        account_number="1234567890",
        username="alice",
        password=USER_PASSWORD,
        ip_address=IP,
    )
    assert outcome.success, outcome.message
    return outcome.value


async def _create_bob(services):
    outcome = await services.credentials.create_employee(
        full_name="Bob Jones",
        employee_number="EMP100",
        username="bob",
        password=EMPLOYEE_PASSWORD,
    )
    assert outcome.success, outcome.message
    return outcome.value


class TestSqlPrincipals:
    @pytest.mark.asyncio
    async def test_register_and_login(self, sql_services):
        alice = await _register_alice(sql_services)

        outcome = await sql_services.credentials.authenticate(
            PrincipalKind.USER, "alice", USER_PASSWORD, IP
        )

        assert outcome.success
        assert outcome.value.id == alice.id

    @pytest.mark.asyncio
    async def test_unique_constraint_maps_to_conflict(self, sql_services, sql_repositories):
        await _register_alice(sql_services)

        duplicate = User(
            full_name="Other Person",
            id_number="8501015009088",
            account_number="1234567890",
            username="other",
            password_hash="$argon2id$placeholder",
            is_active=True,
            failed_login_attempts=0,
            created_at=START_TIME,
        )

        with pytest.raises(ConflictError, match="Account already exists"):
            await sql_repositories.principals.add(duplicate)

    @pytest.mark.asyncio
    async def test_lockout_is_persisted(self, sql_services, sql_repositories, clock):
        alice = await _register_alice(sql_services)

        for _ in range(5):
            await sql_services.credentials.authenticate(
                PrincipalKind.USER, "alice", "Wr0ng!Pass", IP
            )
        locked = await sql_services.credentials.authenticate(
            PrincipalKind.USER, "alice", USER_PASSWORD, IP
        )

        assert locked.error == ErrorKind.LOCKED
        stored = await sql_repositories.principals.get(PrincipalKind.USER, alice.id)
        assert stored.failed_login_attempts == 5
        assert stored.account_locked_until == clock.now() + timedelta(minutes=30)

        clock.advance(timedelta(minutes=30))
        assert (
            await sql_services.credentials.authenticate(
                PrincipalKind.USER, "alice", USER_PASSWORD, IP
            )
        ).success

    @pytest.mark.asyncio
    async def test_deactivated_user_cannot_log_in(self, sql_services, sql_repositories):
        alice = await _register_alice(sql_services)
        bob = await _create_bob(sql_services)

        outcome = await sql_services.credentials.set_account_active(
            PrincipalKind.USER, alice.id, False, bob.id, IP
        )

        assert outcome.success
        stored = await sql_repositories.principals.get(PrincipalKind.USER, alice.id)
        assert stored.is_active is False
        login = await sql_services.credentials.authenticate(
            PrincipalKind.USER, "alice", USER_PASSWORD, IP
        )
        assert login.message == "Invalid credentials"
        assert await sql_repositories.principals.set_active(PrincipalKind.USER, 999, True) is None


class TestSqlTransactions:
    @pytest.mark.asyncio
    async def test_single_winner_under_concurrency(self, sql_services):
        alice = await _register_alice(sql_services)
        bob = await _create_bob(sql_services)
        tx = (
            await sql_services.transactions.create_payment(
                user_id=alice.id, ip_address=IP, **PAYMENT
            )
        ).value
        assert tx.amount == Decimal("10.00")

        results = await asyncio.gather(
            *(sql_services.transactions.approve(tx.id, bob.id, IP) for _ in range(5))
        )

        assert sum(1 for outcome in results if outcome.success) == 1
        assert {outcome.error for outcome in results if not outcome.success} == {
            ErrorKind.CONFLICT
        }

    @pytest.mark.asyncio
    async def test_denial_note_is_appended(self, sql_services):
        alice = await _register_alice(sql_services)
        bob = await _create_bob(sql_services)
        tx = (
            await sql_services.transactions.create_payment(
                user_id=alice.id, ip_address=IP, notes="Invoice 7", **PAYMENT
            )
        ).value

        outcome = await sql_services.transactions.deny(tx.id, bob.id, "Fraud", IP)

        assert outcome.value.status == "denied"
        assert outcome.value.notes == "Invoice 7 | Denied: Fraud"
        assert outcome.value.processed_by == bob.id

    @pytest.mark.asyncio
    async def test_listing_newest_first(self, sql_services, clock):
        alice = await _register_alice(sql_services)
        ids = []
        for _ in range(3):
            created = await sql_services.transactions.create_payment(
                user_id=alice.id, ip_address=IP, **PAYMENT
            )
            ids.append(created.value.id)
            clock.advance(timedelta(seconds=1))

        listing = await sql_services.transactions.list_user_transactions(alice.id)

        assert [tx.id for tx in listing.value] == list(reversed(ids))

    @pytest.mark.asyncio
    async def test_unknown_transaction(self, sql_services):
        bob = await _create_bob(sql_services)

        outcome = await sql_services.transactions.approve(999, bob.id, IP)

        assert outcome.error == ErrorKind.NOT_FOUND


class TestSqlCsrfTokens:
    @pytest.mark.asyncio
    async def test_consume_once(self, sql_services, sql_repositories, clock):
        token = await sql_services.csrf.generate()

        first = await sql_repositories.csrf_tokens.consume(token, clock.now())
        second = await sql_repositories.csrf_tokens.consume(token, clock.now())
        third = await sql_repositories.csrf_tokens.consume(token, clock.now())

        assert first.status is CsrfConsumeStatus.CONSUMED
        assert second.status is CsrfConsumeStatus.USED
        assert third.status is CsrfConsumeStatus.NOT_FOUND

    @pytest.mark.asyncio
    async def test_expired_and_purge(self, sql_services, sql_repositories, clock):
        expired = await sql_services.csrf.generate()
        clock.advance(timedelta(hours=12))
        await sql_services.csrf.generate()
        clock.advance(timedelta(hours=12))

        result = await sql_repositories.csrf_tokens.consume(expired, clock.now())
        assert result.status is CsrfConsumeStatus.EXPIRED

        stale = await sql_services.csrf.generate()
        await sql_services.csrf.validate_and_consume(stale, "POST", IP)

        assert await sql_services.csrf.purge_expired() == 1

    @pytest.mark.asyncio
    async def test_concurrent_consume_has_one_winner(self, sql_services):
        token = await sql_services.csrf.generate()

        results = await asyncio.gather(
            *(sql_services.csrf.validate_and_consume(token, "POST", IP) for _ in range(5))
        )

        assert sum(1 for outcome in results if outcome.success) == 1


class TestSqlSecurityLog:
    @pytest.mark.asyncio
    async def test_cleanup(self, sql_services, clock):
        await sql_services.security_log.log("OLD_EVENT", IP)
        clock.advance(timedelta(days=91))
        await sql_services.security_log.log("NEW_EVENT", IP)

        deleted = await sql_services.security_log.cleanup_old_logs(90)

        assert deleted == 1
        remaining = await sql_services.security_log.list_recent()
        assert [entry.action for entry in remaining] == ["NEW_EVENT"]
