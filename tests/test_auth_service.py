from __future__ import annotations

import threading
from datetime import timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from fakes import FakeClock, InMemoryRefreshTokenStore, InMemoryUserStore, build_user
from models.user import UserStatus
from services.auth_service import (
    ACCOUNT_SUSPENDED,
    INVALID_CREDENTIALS,
    INVALID_REFRESH_TOKEN,
    USER_UNAVAILABLE,
    AuthService,
)
from utils.errors import Conflict, InvalidArgument, NotFound, Unauthorized
from utils.security import PasswordHasher, TokenService, hash_refresh_token

PASSWORD = "Str0ng!Pass"


@pytest.fixture
def hasher() -> PasswordHasher:
    return PasswordHasher(time_cost=1, memory_cost=8, parallelism=1)


@pytest.fixture
def tokens() -> TokenService:
    return TokenService(secret="k" * 32, issuer="forum-api", audience="forum-clients")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def users() -> InMemoryUserStore:
    return InMemoryUserStore()


@pytest.fixture
def refresh_tokens() -> InMemoryRefreshTokenStore:
    return InMemoryRefreshTokenStore()


@pytest.fixture
def service(users, refresh_tokens, hasher, tokens, clock) -> AuthService:
    return AuthService(users, refresh_tokens, hasher, tokens, refresh_token_ttl=timedelta(days=7), clock=clock)


def test_register_then_login(service, tokens, users) -> None:
    user_id = service.register("alice", "alice@x.com", PASSWORD)
    pair = service.login("alice@x.com", PASSWORD)

    assert pair.token_type == "Bearer"
    assert pair.expires_in == 3600
    assert len(pair.access_token.split(".")) == 3
    assert pair.refresh_token
    claims = tokens.decode_access_token(pair.access_token)
    assert claims["sub"] == user_id
    assert claims["username"] == "alice"
    assert claims["roles"] == ["user"]

    user = users.find_by_id(user_id)
    assert user.status == UserStatus.ACTIVE
    assert user.email_verified is False
    assert user.password_hash != PASSWORD
    assert user.updated_at >= user.created_at


def test_register_rejects_taken_email_and_username(service) -> None:
    service.register("alice", "alice@x.com", PASSWORD)

    with pytest.raises(Conflict) as exc:
        service.register("alice2", "alice@x.com", PASSWORD)
    assert exc.value.message == "Email already exists"

    with pytest.raises(Conflict) as exc:
        service.register("alice", "other@x.com", PASSWORD)
    assert exc.value.message == "Username already exists"


@pytest.mark.parametrize("email,password", [("", PASSWORD), ("alice@x.com", ""), ("  ", PASSWORD), (None, PASSWORD)])
def test_login_requires_both_credentials(service, email, password) -> None:
    with pytest.raises(InvalidArgument):
        service.login(email, password)


def test_unknown_email_and_wrong_password_look_the_same(service) -> None:
    service.register("alice", "alice@x.com", PASSWORD)

    with pytest.raises(Unauthorized) as unknown:
        service.login("nobody@x.com", PASSWORD)
    with pytest.raises(Unauthorized) as wrong:
        service.login("alice@x.com", "not-the-password")

    assert unknown.value.message == wrong.value.message == INVALID_CREDENTIALS


def test_suspended_user_cannot_log_in(service, users, hasher) -> None:
    user = build_user(hasher, status=UserStatus.SUSPENDED)
    users.create(user)

    with pytest.raises(Unauthorized) as exc:
        service.login(user.email, PASSWORD)
    assert exc.value.message == ACCOUNT_SUSPENDED

    # without the right password the account state is not revealed
    with pytest.raises(Unauthorized) as exc:
        service.login(user.email, "not-the-password")
    assert exc.value.message == INVALID_CREDENTIALS


def test_login_records_last_seen_and_session_provenance(service, users, refresh_tokens, clock) -> None:
    user_id = service.register("alice", "alice@x.com", PASSWORD)
    pair = service.login("alice@x.com", PASSWORD, user_agent="pytest", ip_address="10.0.0.1")

    assert users.find_by_id(user_id).last_seen_at == clock.now
    record = refresh_tokens.find_active_by_hash(hash_refresh_token(pair.refresh_token), clock.now)
    assert record.user_id == user_id
    assert record.user_agent == "pytest"
    assert record.ip_address == "10.0.0.1"
    assert record.expires_at == clock.now + timedelta(days=7)


def test_raw_refresh_token_is_never_stored(service, refresh_tokens) -> None:
    service.register("alice", "alice@x.com", PASSWORD)
    pair = service.login("alice@x.com", PASSWORD)

    (record,) = refresh_tokens.records.values()
    assert record.token_hash == hash_refresh_token(pair.refresh_token)
    assert pair.refresh_token not in {str(v) for v in vars(record).values()}


def test_refresh_rotates_and_consumes_the_old_token(service, tokens) -> None:
    user_id = service.register("alice", "alice@x.com", PASSWORD)
    first = service.login("alice@x.com", PASSWORD, user_agent="pytest")

    second = service.refresh(first.refresh_token)
    assert second.refresh_token != first.refresh_token
    assert tokens.decode_access_token(second.access_token)["sub"] == user_id

    with pytest.raises(Unauthorized) as exc:
        service.refresh(first.refresh_token)
    assert exc.value.message == INVALID_REFRESH_TOKEN

    # the rotated token carries on working
    assert service.refresh(second.refresh_token).refresh_token


def test_rotation_keeps_session_provenance(service, refresh_tokens, clock) -> None:
    service.register("alice", "alice@x.com", PASSWORD)
    first = service.login("alice@x.com", PASSWORD, user_agent="pytest", ip_address="10.0.0.1")
    second = service.refresh(first.refresh_token)

    record = refresh_tokens.find_active_by_hash(hash_refresh_token(second.refresh_token), clock.now)
    assert (record.user_agent, record.ip_address) == ("pytest", "10.0.0.1")


def test_expired_refresh_token_is_rejected(service, clock) -> None:
    service.register("alice", "alice@x.com", PASSWORD)
    pair = service.login("alice@x.com", PASSWORD)

    clock.advance(days=7)
    with pytest.raises(Unauthorized) as exc:
        service.refresh(pair.refresh_token)
    assert exc.value.message == INVALID_REFRESH_TOKEN


def test_unknown_refresh_token_is_rejected(service) -> None:
    with pytest.raises(Unauthorized):
        service.refresh("never-issued")
    with pytest.raises(InvalidArgument):
        service.refresh("")


def test_refresh_is_refused_once_the_user_is_suspended(service, users) -> None:
    user_id = service.register("alice", "alice@x.com", PASSWORD)
    pair = service.login("alice@x.com", PASSWORD)
    users.find_by_id(user_id).status = UserStatus.SUSPENDED

    with pytest.raises(Unauthorized) as exc:
        service.refresh(pair.refresh_token)
    assert exc.value.message == USER_UNAVAILABLE


def test_concurrent_refresh_with_the_same_token_succeeds_once(service) -> None:
    service.register("alice", "alice@x.com", PASSWORD)
    pair = service.login("alice@x.com", PASSWORD)

    barrier = threading.Barrier(2)
    outcomes: list[str] = []
    lock = threading.Lock()

    def attempt() -> None:
        barrier.wait()
        try:
            service.refresh(pair.refresh_token)
            result = "ok"
        except Unauthorized:
            result = "rejected"
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=attempt) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(outcomes) == ["ok", "rejected"]


def test_logout_revokes_and_is_idempotent(service) -> None:
    service.register("alice", "alice@x.com", PASSWORD)
    pair = service.login("alice@x.com", PASSWORD)

    service.logout(pair.refresh_token)
    service.logout(pair.refresh_token)
    service.logout("never-issued")
    service.logout(None)

    with pytest.raises(Unauthorized):
        service.refresh(pair.refresh_token)


def test_logout_all_revokes_every_session(service) -> None:
    user_id = service.register("alice", "alice@x.com", PASSWORD)
    service.register("bob", "bob@x.com", PASSWORD)
    sessions = [service.login("alice@x.com", PASSWORD) for _ in range(3)]
    bob = service.login("bob@x.com", PASSWORD)

    assert service.logout_all(user_id) == 3
    assert service.logout_all(user_id) == 0
    for pair in sessions:
        with pytest.raises(Unauthorized):
            service.refresh(pair.refresh_token)
    assert service.refresh(bob.refresh_token).access_token


def test_access_tokens_survive_logout(service) -> None:
    service.register("alice", "alice@x.com", PASSWORD)
    pair = service.login("alice@x.com", PASSWORD)
    service.logout(pair.refresh_token)
    assert service.validate_token(pair.access_token) is True
    assert service.validate_token("garbage") is False


def test_get_user(service) -> None:
    user_id = service.register("alice", "alice@x.com", PASSWORD)
    assert service.get_user(user_id).username == "alice"
    with pytest.raises(NotFound):
        service.get_user("missing")


class RacingUserStore(InMemoryUserStore):
    """A rival registration lands between the duplicate checks and the insert."""

    def __init__(self, rival):
        super().__init__()
        self.rival = rival
        self.raced = False

    def find_by_email(self, email):
        return super().find_by_email(email) if self.raced else None

    def find_by_username(self, username):
        return super().find_by_username(username) if self.raced else None

    def create(self, user):
        self.raced = True
        self.users[self.rival.id] = self.rival
        raise IntegrityError("INSERT INTO users", {}, Exception("UNIQUE constraint failed"))


@pytest.mark.parametrize(
    "rival_username,rival_email,message",
    [
        ("someone", "alice@x.com", "Email already exists"),
        ("alice", "someone@x.com", "Username already exists"),
    ],
)
def test_register_race_still_reports_a_typed_conflict(
    refresh_tokens, hasher, tokens, clock, rival_username, rival_email, message
) -> None:
    rival = build_user(hasher, username=rival_username, email=rival_email)
    service = AuthService(RacingUserStore(rival), refresh_tokens, hasher, tokens, clock=clock)

    with pytest.raises(Conflict) as exc:
        service.register("alice", "alice@x.com", PASSWORD)
    assert exc.value.message == message
