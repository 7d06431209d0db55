from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

import pytest

from authflow.application.services.auth_tokens import AuthTokenStore
from authflow.application.services.mailer import AccountMailer, LinkBuilder
from authflow.application.services.password_hashing import BcryptPasswordHasher
from authflow.domain.users.entities import AuthToken, TokenPurpose, User
from authflow.domain.users.exceptions import (
    DuplicateEmailError,
    DuplicateLoginError,
    TokenIdCollisionError,
    UserNotFoundError,
)
from authflow.domain.users.repositories import AuthTokenRepository, UserRepository

BASE_URL = "https://auth.example.test"
TOKEN_TTL = timedelta(hours=24)


class InMemoryUserRepository(UserRepository):
    def __init__(self) -> None:
        self._users: dict[int, User] = {}
        self._seq = 1
        self._lock = threading.Lock()

    def find_by_login(self, login: str) -> User | None:
        with self._lock:
            return next((u for u in self._users.values() if u.login == login), None)

    def find_by_id(self, user_id: int) -> User | None:
        with self._lock:
            return self._users.get(user_id)

    def create(
        self,
        *,
        email: str,
        login: str,
        password_hash: str,
        first_name: str,
        last_name: str,
    ) -> User:
        with self._lock:
            if any(u.login == login for u in self._users.values()):
                raise DuplicateLoginError()
            if any(u.email == email for u in self._users.values()):
                raise DuplicateEmailError()
            user = User(
                id=self._seq,
                login=login,
                email=email,
                password_hash=password_hash,
                first_name=first_name,
                last_name=last_name,
            )
            self._users[user.id] = user
            self._seq += 1
            return user

    def update(self, user: User) -> None:
        with self._lock:
            if user.id not in self._users:
                raise UserNotFoundError(user.id)
            self._users[user.id] = user

    def delete(self, user_id: int) -> None:
        with self._lock:
            self._users.pop(user_id, None)


class InMemoryAuthTokenRepository(AuthTokenRepository):
    def __init__(self) -> None:
        self.tokens: dict[str, AuthToken] = {}
        self._lock = threading.Lock()

    def add(self, token: AuthToken) -> None:
        with self._lock:
            if token.id in self.tokens:
                raise TokenIdCollisionError()
            self.tokens[token.id] = token

    def get(self, token_id: str) -> AuthToken | None:
        with self._lock:
            return self.tokens.get(token_id)

    def remove(self, token_id: str) -> bool:
        with self._lock:
            return self.tokens.pop(token_id, None) is not None

    def remove_for_user(self, user_id: int, purpose: TokenPurpose) -> int:
        with self._lock:
            doomed = [
                key
                for key, token in self.tokens.items()
                if token.uid == user_id and token.purpose is purpose
            ]
            for key in doomed:
                del self.tokens[key]
            return len(doomed)

    def remove_expired(self, now: datetime) -> int:
        with self._lock:
            doomed = [key for key, token in self.tokens.items() if not token.is_valid(now)]
            for key in doomed:
                del self.tokens[key]
            return len(doomed)


@dataclass
class SentMessage:
    to: str
    subject: str
    body: str


@dataclass
class RecordingNotifier:
    sent: list[SentMessage] = field(default_factory=list)

    def send(self, to: str, subject: str, body: str) -> None:
        self.sent.append(SentMessage(to, subject, body))

    def last_link(self, marker: str) -> str:
        """Return the token id of the most recent link containing ``marker``."""
        for message in reversed(self.sent):
            for line in message.body.split('"'):
                if marker in line:
                    return line.rsplit("/", 1)[-1]
        raise AssertionError(f"no link with {marker!r} was sent")


class FailingNotifier:
    def __init__(self) -> None:
        self.attempts = 0

    def send(self, to: str, subject: str, body: str) -> None:
        self.attempts += 1
        raise ConnectionError("mail relay unreachable")


class FrozenClock:
    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2025, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now = self.now + delta


@pytest.fixture()
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture(scope="session")
def hasher() -> BcryptPasswordHasher:
    return BcryptPasswordHasher(log_rounds=4)


@pytest.fixture()
def users() -> InMemoryUserRepository:
    return InMemoryUserRepository()


@pytest.fixture()
def token_repository() -> InMemoryAuthTokenRepository:
    return InMemoryAuthTokenRepository()


@pytest.fixture()
def tokens(token_repository: InMemoryAuthTokenRepository, clock: FrozenClock) -> AuthTokenStore:
    return AuthTokenStore(token_repository, clock=clock)


@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture()
def mailer(notifier: RecordingNotifier) -> AccountMailer:
    return AccountMailer(notifier, LinkBuilder(BASE_URL), sender="no-reply@example.test")