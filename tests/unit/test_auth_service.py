"""Unit tests for AuthService.

Tests bcrypt hashing, registration, credential checks, last-login
scheduling and session token minting/decoding with a mocked credential store.
"""

import asyncio
import threading
import time
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import jwt
import pytest

from messagely.config import Settings
from messagely.errors import (
    DuplicateUsername,
    RegistrationFailed,
    StoreUnavailable,
    Unauthenticated,
    UpdateFailed,
)
from messagely.models.user import UserProfile
from messagely.services.auth_service import (
    JWT_ALGORITHM,
    AuthService,
    await_pending_logins,
)

JWT_SECRET = "test-secret-key-for-jwt-unit-tests"


def _make_profile(username="bob"):
    return UserProfile(
        username=username,
        first_name="Bob",
        last_name="Smith",
        phone="+14150000000",
        join_at=datetime.now(timezone.utc),
    )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def users():
    """Credential store double."""
    store = MagicMock()
    store.exists = AsyncMock(return_value=False)
    store.insert = AsyncMock(return_value=_make_profile())
    store.get_password_hash = AsyncMock(return_value=None)
    store.touch_last_login = AsyncMock(return_value=None)
    return store


@pytest.fixture
def auth_service(users):
    """AuthService with a deterministic secret and the cheapest bcrypt cost."""
    settings = Settings(secret_key=JWT_SECRET, bcrypt_work_factor=4)
    return AuthService(settings=settings, users=users)


# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------

class TestPasswordHashing:
    """Tests for bcrypt hash_password / verify_password."""

    def test_hash_password_returns_bcrypt_string(self, auth_service):
        hashed = auth_service.hash_password("my-secret-pw")
        assert hashed.startswith("$2b$") or hashed.startswith("$2a$")
        assert len(hashed) == 60

    def test_hash_password_uses_configured_work_factor(self, auth_service):
        hashed = auth_service.hash_password("my-secret-pw")
        assert hashed.split("$")[2] == "04"

    def test_hash_password_different_salts(self, auth_service):
        h1 = auth_service.hash_password("same-password")
        h2 = auth_service.hash_password("same-password")
        assert h1 != h2, "Each call should produce a unique salt"

    def test_verify_password_correct(self, auth_service):
        hashed = auth_service.hash_password("correct-horse-battery")
        assert auth_service.verify_password("correct-horse-battery", hashed) is True

    def test_verify_password_wrong(self, auth_service):
        hashed = auth_service.hash_password("right-password")
        assert auth_service.verify_password("wrong-password", hashed) is False

    def test_verify_password_malformed_hash_is_false(self, auth_service):
        assert auth_service.verify_password("anything", "not-a-bcrypt-hash") is False


# ---------------------------------------------------------------------------
# register
# ---------------------------------------------------------------------------

class TestRegister:
    """Tests for AuthService.register."""

    async def test_returns_created_profile(self, auth_service, users):
        user = await auth_service.register(
            username="bob",
            password="secret",
            first_name="Bob",
            last_name="Smith",
            phone="+14150000000",
        )

        assert user.username == "bob"
        assert not hasattr(user, "password")
        users.exists.assert_awaited_once_with("bob")

    async def test_stores_bcrypt_hash_not_password(self, auth_service, users):
        await auth_service.register("bob", "secret", "Bob", "Smith", "+14150000000")

        stored_hash = users.insert.call_args.kwargs["password_hash"]
        assert stored_hash != "secret"
        assert auth_service.verify_password("secret", stored_hash) is True

    async def test_taken_username_rejected_before_insert(self, auth_service, users):
        users.exists.return_value = True

        with pytest.raises(DuplicateUsername, match="bob"):
            await auth_service.register("bob", "other", "Robert", "Other", "+1")

        users.insert.assert_not_awaited()

    async def test_unique_violation_after_clean_precheck_propagates(self, auth_service, users):
        """Two concurrent registrations: the store's constraint is the real guard."""
        users.insert.side_effect = DuplicateUsername("bob")

        with pytest.raises(DuplicateUsername):
            await auth_service.register("bob", "secret", "Bob", "Smith", "+1")

    async def test_no_row_returned_raises_registration_failed(self, auth_service, users):
        users.insert.return_value = None

        with pytest.raises(RegistrationFailed):
            await auth_service.register("bob", "secret", "Bob", "Smith", "+1")

    async def test_hashing_runs_off_loop_thread(self, auth_service, users):
        loop_thread = threading.get_ident()
        seen = []

        def record(password):
            seen.append(threading.get_ident())
            return "$2b$04$hashed"

        with patch.object(auth_service, "hash_password", side_effect=record):
            await auth_service.register("bob", "secret", "Bob", "Smith", "+1")

        assert seen and seen[0] != loop_thread
        assert users.insert.call_args.kwargs["password_hash"] == "$2b$04$hashed"


# ---------------------------------------------------------------------------
# authenticate
# ---------------------------------------------------------------------------

class TestAuthenticate:
    """Tests for AuthService.authenticate."""

    async def test_correct_password(self, auth_service, users):
        users.get_password_hash.return_value = auth_service.hash_password("password")

        assert await auth_service.authenticate("test1", "password") is True

    async def test_wrong_password(self, auth_service, users):
        users.get_password_hash.return_value = auth_service.hash_password("password")

        assert await auth_service.authenticate("test1", "WRONG") is False

    async def test_unknown_user(self, auth_service, users):
        users.get_password_hash.return_value = None

        assert await auth_service.authenticate("not-user", "password") is False
        users.get_password_hash.assert_awaited_once_with("not-user")

    async def test_unknown_user_still_runs_bcrypt(self, auth_service, users):
        users.get_password_hash.return_value = None

        with patch.object(auth_service, "verify_password", return_value=False) as verify:
            await auth_service.authenticate("not-user", "password")

        verify.assert_called_once()

    async def test_store_failure_propagates(self, auth_service, users):
        users.get_password_hash.side_effect = StoreUnavailable()

        with pytest.raises(StoreUnavailable):
            await auth_service.authenticate("test1", "password")

    async def test_password_check_does_not_block_event_loop(self, auth_service, users):
        """The loop must be free to run while bcrypt is comparing."""
        users.get_password_hash.return_value = "$2b$04$stored"
        released = threading.Event()

        def slow_verify(password, password_hash):
            return released.wait(timeout=2)

        with patch.object(auth_service, "verify_password", side_effect=slow_verify):
            login = asyncio.create_task(auth_service.authenticate("test1", "password"))
            await asyncio.sleep(0.01)
            released.set()

            assert await login is True

    async def test_concurrent_logins_keep_loop_responsive(self, users):
        settings = Settings(secret_key=JWT_SECRET, bcrypt_work_factor=12)
        service = AuthService(settings=settings, users=users)
        users.get_password_hash.return_value = service.hash_password("password")
        gaps = []

        async def ticker():
            last = time.perf_counter()
            while True:
                await asyncio.sleep(0.005)
                now = time.perf_counter()
                gaps.append(now - last)
                last = now

        ticking = asyncio.create_task(ticker())
        results = await asyncio.gather(
            *(service.authenticate("test1", "password") for _ in range(4))
        )
        ticking.cancel()

        assert results == [True] * 4
        assert gaps and max(gaps) < 0.2

    async def test_unknown_user_hashing_runs_off_loop_thread(self, auth_service, users):
        users.get_password_hash.return_value = None
        loop_thread = threading.get_ident()
        seen = []

        def record(password, password_hash):
            seen.append(threading.get_ident())
            return False

        with patch.object(auth_service, "verify_password", side_effect=record):
            await auth_service.authenticate("not-user", "password")

        assert seen and seen[0] != loop_thread


# ---------------------------------------------------------------------------
# Last-login updates
# ---------------------------------------------------------------------------

class TestLoginTimestamp:
    """Tests for update_login_timestamp and record_login."""

    async def test_update_delegates_to_store(self, auth_service, users):
        await auth_service.update_login_timestamp("test1")
        users.touch_last_login.assert_awaited_once_with("test1")

    async def test_update_failure_propagates(self, auth_service, users):
        users.touch_last_login.side_effect = UpdateFailed("ghost")

        with pytest.raises(UpdateFailed, match="ghost"):
            await auth_service.update_login_timestamp("ghost")

    async def test_record_login_runs_update_in_background(self, auth_service, users):
        task = auth_service.record_login("test1")
        assert isinstance(task, asyncio.Task)

        await task

        users.touch_last_login.assert_awaited_once_with("test1")

    async def test_record_login_logs_failure_instead_of_raising(self, auth_service, users):
        users.touch_last_login.side_effect = UpdateFailed("ghost")

        with patch("messagely.services.auth_service.logger") as mock_logger:
            await auth_service.record_login("ghost")

        mock_logger.warning.assert_called_once()
        assert mock_logger.warning.call_args[0][0] == "last_login_update_failed"
        assert mock_logger.warning.call_args.kwargs["username"] == "ghost"

    async def test_record_login_logs_store_errors(self, auth_service, users):
        users.touch_last_login.side_effect = ConnectionRefusedError("db down")

        with patch("messagely.services.auth_service.logger") as mock_logger:
            await auth_service.record_login("test1")

        mock_logger.error.assert_called_once()
        assert mock_logger.error.call_args[0][0] == "last_login_update_failed"

    async def test_await_pending_logins_drains_tasks(self, auth_service, users):
        finished = []

        async def slow_touch(username):
            await asyncio.sleep(0.01)
            finished.append(username)

        users.touch_last_login.side_effect = slow_touch
        auth_service.record_login("test1")

        await await_pending_logins(timeout=1.0)

        assert finished == ["test1"]

    async def test_await_pending_logins_noop_when_idle(self):
        await await_pending_logins(timeout=0.1)


# ---------------------------------------------------------------------------
# Session tokens
# ---------------------------------------------------------------------------

class TestIssueToken:
    """Tests for token minting."""

    def test_claims_are_exactly_username_and_iat(self, auth_service):
        token = auth_service.issue_token("bob")

        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
        assert set(payload) == {"username", "iat"}
        assert payload["username"] == "bob"
        assert isinstance(payload["iat"], int)

    def test_iat_is_current_time(self, auth_service):
        before = int(time.time())
        token = auth_service.issue_token("bob")
        after = int(time.time())

        payload = jwt.decode(token, options={"verify_signature": False})
        assert before <= payload["iat"] <= after

    def test_later_token_has_greater_iat(self, auth_service):
        with patch("messagely.services.auth_service.time") as mock_time:
            mock_time.time.return_value = 1_700_000_000
            first = auth_service.issue_token("test1")
            mock_time.time.return_value = 1_700_000_005
            second = auth_service.issue_token("test1")

        first_iat = jwt.decode(first, options={"verify_signature": False})["iat"]
        second_iat = jwt.decode(second, options={"verify_signature": False})["iat"]
        assert second_iat > first_iat

    def test_exp_added_only_when_ttl_configured(self, users):
        settings = Settings(secret_key=JWT_SECRET, bcrypt_work_factor=4, token_ttl_seconds=60)
        service = AuthService(settings=settings, users=users)

        payload = jwt.decode(service.issue_token("bob"), JWT_SECRET, algorithms=[JWT_ALGORITHM])

        assert set(payload) == {"username", "iat", "exp"}
        assert payload["exp"] - payload["iat"] == 60

    def test_token_contains_no_password_material(self, auth_service):
        token = auth_service.issue_token("bob")
        payload = jwt.decode(token, options={"verify_signature": False})
        assert "password" not in payload


class TestDecodeToken:
    """Tests for token validation."""

    def test_round_trip(self, auth_service):
        payload = auth_service.decode_token(auth_service.issue_token("alice"))
        assert payload["username"] == "alice"

    def test_other_secret_rejected(self, auth_service):
        forged = jwt.encode(
            {"username": "alice", "iat": int(time.time())},
            "wrong-secret",
            algorithm=JWT_ALGORITHM,
        )

        with pytest.raises(Unauthenticated):
            auth_service.decode_token(forged)

    def test_garbage_string_rejected(self, auth_service):
        with pytest.raises(Unauthenticated):
            auth_service.decode_token("not.a.jwt.token")

    def test_expired_token_rejected(self, auth_service):
        now = int(time.time())
        expired = jwt.encode(
            {"username": "alice", "iat": now - 3600, "exp": now - 60},
            JWT_SECRET,
            algorithm=JWT_ALGORITHM,
        )

        with pytest.raises(Unauthenticated, match="expired"):
            auth_service.decode_token(expired)

    def test_missing_username_rejected(self, auth_service):
        token = jwt.encode({"iat": int(time.time())}, JWT_SECRET, algorithm=JWT_ALGORITHM)

        with pytest.raises(Unauthenticated):
            auth_service.decode_token(token)

    def test_missing_iat_rejected(self, auth_service):
        token = jwt.encode({"username": "alice"}, JWT_SECRET, algorithm=JWT_ALGORITHM)

        with pytest.raises(Unauthenticated):
            auth_service.decode_token(token)

    def test_none_algorithm_rejected(self, auth_service):
        unsigned = jwt.encode(
            {"username": "alice", "iat": int(time.time())}, None, algorithm="none"
        )

        with pytest.raises(Unauthenticated):
            auth_service.decode_token(unsigned)
