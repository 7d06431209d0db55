from __future__ import annotations

import threading
import time
from dataclasses import replace
from datetime import timedelta

import pytest
from conftest import (
    BASE_URL,
    TOKEN_TTL,
    FailingNotifier,
    FrozenClock,
    InMemoryAuthTokenRepository,
    InMemoryUserRepository,
    RecordingNotifier,
)
from loguru import logger

from authflow.application.services.auth_tokens import AuthTokenStore
from authflow.application.services.mailer import AccountMailer, LinkBuilder
from authflow.application.services.password_hashing import BcryptPasswordHasher
from authflow.application.use_cases.users.activate_user import ActivateUserUseCase
from authflow.application.use_cases.users.change_password import ChangePasswordUseCase
from authflow.application.use_cases.users.forgot_password import ForgotPasswordUseCase
from authflow.application.use_cases.users.login_user import LoginUserUseCase
from authflow.application.use_cases.users.outcomes import (
    Activated,
    ActivationResent,
    AwaitingActivation,
    Changed,
    LinkSent,
    Rejected,
    RejectionReason,
    Reset,
    Silent,
    Verified,
)
from authflow.application.use_cases.users.register_user import (
    RegisterUserUseCase,
    SignUpRequest,
)
from authflow.application.use_cases.users.resend_activation import ResendActivationUseCase
from authflow.application.use_cases.users.reset_password import ResetPasswordUseCase
from authflow.domain.users.entities import Credentials
from authflow.domain.users.exceptions import HashFormatInvalidError, UserNotFoundError
from authflow.infrastructure.notifications import BackgroundNotifier
from authflow.shared.logging import fingerprint

ALICE = SignUpRequest(
    login="alice",
    email="alice@example.test",
    password="wonderland-1",
    first_name="Alice",
    last_name="Liddell",
)


class Flows:
    def __init__(
        self,
        users: InMemoryUserRepository,
        tokens: AuthTokenStore,
        hasher: BcryptPasswordHasher,
        mailer: AccountMailer,
        clock: FrozenClock,
    ) -> None:
        self.users = users
        self.tokens = tokens
        self.register = RegisterUserUseCase(
            users=users, tokens=tokens, password_hasher=hasher, mailer=mailer, token_ttl=TOKEN_TTL
        )
        self.activate = ActivateUserUseCase(users=users, tokens=tokens)
        self.resend = ResendActivationUseCase(
            users=users, tokens=tokens, mailer=mailer, token_ttl=TOKEN_TTL
        )
        self.login = LoginUserUseCase(users=users, password_hasher=hasher)
        self.change = ChangePasswordUseCase(
            users=users, password_hasher=hasher, mailer=mailer, clock=clock
        )
        self.forgot = ForgotPasswordUseCase(
            users=users, tokens=tokens, mailer=mailer, token_ttl=TOKEN_TTL
        )
        self.reset = ResetPasswordUseCase(
            users=users, tokens=tokens, password_hasher=hasher, mailer=mailer
        )


@pytest.fixture()
def flows(
    users: InMemoryUserRepository,
    tokens: AuthTokenStore,
    hasher: BcryptPasswordHasher,
    mailer: AccountMailer,
    clock: FrozenClock,
) -> Flows:
    return Flows(users, tokens, hasher, mailer, clock)


def _signed_up_and_activated(flows: Flows, notifier: RecordingNotifier) -> int:
    outcome = flows.register.execute(ALICE)
    assert isinstance(outcome, AwaitingActivation)
    assert isinstance(flows.activate.execute(notifier.last_link("/activate/")), Activated)
    return outcome.user_id


def test_signup_creates_unactivated_user_and_sends_link(
    flows: Flows, notifier: RecordingNotifier
) -> None:
    outcome = flows.register.execute(ALICE)

    assert isinstance(outcome, AwaitingActivation)
    user = flows.users.find_by_login("alice")
    assert user is not None and user.activated is False
    assert user.password_hash != ALICE.password

    [message] = notifier.sent
    assert message.to == "alice@example.test"
    assert "auth.example.test" in message.subject
    assert f"{BASE_URL}/auth/signup/activate/" in message.body
    assert "Alice Liddell" in message.body


def test_alice_scenario(flows: Flows, notifier: RecordingNotifier) -> None:
    flows.register.execute(ALICE)

    not_yet = flows.login.execute(Credentials("alice", "wonderland-1"))
    assert not_yet == Rejected(RejectionReason.ACCOUNT_NOT_ACTIVATED)
    wrong = flows.login.execute(Credentials("alice", "looking-glass"))
    assert wrong == Rejected(RejectionReason.INVALID_CREDENTIALS)

    activated = flows.activate.execute(notifier.last_link("/activate/"))
    assert isinstance(activated, Activated)

    ok = flows.login.execute(Credentials("alice", "wonderland-1"))
    assert ok == Verified(user_id=activated.user_id)
    wrong = flows.login.execute(Credentials("alice", "looking-glass"))
    assert wrong == Rejected(RejectionReason.INVALID_CREDENTIALS)


def test_unknown_login_looks_like_wrong_password(flows: Flows, notifier: RecordingNotifier) -> None:
    _signed_up_and_activated(flows, notifier)

    unknown = flows.login.execute(Credentials("bob", "whatever-pass"))
    wrong = flows.login.execute(Credentials("alice", "whatever-pass"))

    assert unknown == wrong == Rejected(RejectionReason.INVALID_CREDENTIALS)
    assert unknown.message_key == "login.invalid.credentials"


def test_login_with_corrupt_stored_hash_propagates(
    flows: Flows, notifier: RecordingNotifier
) -> None:
    user_id = _signed_up_and_activated(flows, notifier)
    user = flows.users.find_by_id(user_id)
    assert user is not None
    flows.users.update(replace(user, password_hash="not-a-bcrypt-hash"))

    with pytest.raises(HashFormatInvalidError):
        flows.login.execute(Credentials("alice", "wonderland-1"))


def test_login_upgrades_outdated_work_factor(
    flows: Flows, notifier: RecordingNotifier, users: InMemoryUserRepository
) -> None:
    user_id = _signed_up_and_activated(flows, notifier)
    stronger = LoginUserUseCase(users=users, password_hasher=BcryptPasswordHasher(log_rounds=5))

    assert stronger.execute(Credentials("alice", "wonderland-1")) == Verified(user_id=user_id)
    user = users.find_by_id(user_id)
    assert user is not None
    assert BcryptPasswordHasher.cost_of(user.password_hash) == 5


def test_duplicate_login_is_rejected(flows: Flows, notifier: RecordingNotifier) -> None:
    flows.register.execute(ALICE)

    outcome = flows.register.execute(replace(ALICE, email="other@example.test"))

    assert outcome == Rejected(RejectionReason.DUPLICATE_LOGIN)
    assert len(notifier.sent) == 1


def test_duplicate_email_sends_notice_and_looks_like_success(
    flows: Flows, notifier: RecordingNotifier
) -> None:
    first = flows.register.execute(ALICE)
    outcome = flows.register.execute(replace(ALICE, login="alice2"))

    assert outcome == Rejected(RejectionReason.DUPLICATE_EMAIL)
    assert outcome.message_key == first.message_key
    assert notifier.sent[-1].to == "alice@example.test"
    assert notifier.sent[-1].subject == "You already have an account"
    assert flows.users.find_by_login("alice2") is None


def test_activation_link_is_single_use(flows: Flows, notifier: RecordingNotifier) -> None:
    flows.register.execute(ALICE)
    token_id = notifier.last_link("/activate/")

    assert isinstance(flows.activate.execute(token_id), Activated)
    assert flows.activate.execute(token_id) == Rejected(RejectionReason.INVALID_LINK)


def test_expired_activation_link_is_rejected(
    flows: Flows, notifier: RecordingNotifier, clock: FrozenClock
) -> None:
    flows.register.execute(ALICE)
    clock.advance(TOKEN_TTL + timedelta(seconds=1))

    outcome = flows.activate.execute(notifier.last_link("/activate/"))

    assert outcome == Rejected(RejectionReason.INVALID_LINK)
    user = flows.users.find_by_login("alice")
    assert user is not None and user.activated is False


@pytest.mark.parametrize("token_id", ["", "no-such-token-anywhere"])
def test_unknown_activation_link_is_rejected(flows: Flows, token_id: str) -> None:
    assert flows.activate.execute(token_id) == Rejected(RejectionReason.INVALID_LINK)


def test_activation_for_deleted_user_is_rejected(
    flows: Flows, notifier: RecordingNotifier, users: InMemoryUserRepository
) -> None:
    outcome = flows.register.execute(ALICE)
    assert isinstance(outcome, AwaitingActivation)
    users.delete(outcome.user_id)

    assert flows.activate.execute(notifier.last_link("/activate/")) == Rejected(
        RejectionReason.INVALID_LINK
    )


def test_reset_link_cannot_activate(flows: Flows, notifier: RecordingNotifier) -> None:
    flows.register.execute(ALICE)
    flows.forgot.execute("alice")

    reset_token = notifier.last_link("/reset/")
    assert flows.activate.execute(reset_token) == Rejected(RejectionReason.INVALID_LINK)


def test_resend_activation_supersedes_old_link(flows: Flows, notifier: RecordingNotifier) -> None:
    flows.register.execute(ALICE)
    old = notifier.last_link("/activate/")

    assert isinstance(flows.resend.execute("alice"), ActivationResent)
    new = notifier.last_link("/activate/")

    assert new != old
    assert flows.activate.execute(old) == Rejected(RejectionReason.INVALID_LINK)
    assert isinstance(flows.activate.execute(new), Activated)


def test_resend_activation_outcome_is_uniform(flows: Flows, notifier: RecordingNotifier) -> None:
    _signed_up_and_activated(flows, notifier)
    sent_before = len(notifier.sent)

    assert flows.resend.execute("alice") == flows.resend.execute("nobody") == ActivationResent()
    assert len(notifier.sent) == sent_before


def test_change_password(flows: Flows, notifier: RecordingNotifier) -> None:
    user_id = _signed_up_and_activated(flows, notifier)

    assert flows.change.execute(user_id, "through-the-glass") == Changed(user_id=user_id)

    assert flows.login.execute(Credentials("alice", "wonderland-1")) == Rejected(
        RejectionReason.INVALID_CREDENTIALS
    )
    assert flows.login.execute(Credentials("alice", "through-the-glass")) == Verified(user_id)
    assert notifier.sent[-1].subject == "Your password was changed"


def test_change_password_for_missing_user_is_an_integrity_fault(flows: Flows) -> None:
    with pytest.raises(UserNotFoundError):
        flows.change.execute(404, "through-the-glass")


def test_forgot_password_outcomes_are_indistinguishable(
    flows: Flows, notifier: RecordingNotifier
) -> None:
    _signed_up_and_activated(flows, notifier)

    known = flows.forgot.execute("alice")
    unknown = flows.forgot.execute("mad-hatter")

    assert isinstance(known, LinkSent)
    assert isinstance(unknown, Silent)
    assert known.message_key == unknown.message_key == "reset.email.sent"
    assert notifier.sent[-1].to == "alice@example.test"


def test_reset_scenario(flows: Flows, notifier: RecordingNotifier) -> None:
    user_id = _signed_up_and_activated(flows, notifier)
    flows.forgot.execute("alice")
    token_a = notifier.last_link("/reset/")

    assert flows.reset.link_is_valid(token_a) is True
    assert flows.reset.execute(token_a, "queen-of-hearts") == Reset(user_id=user_id)
    assert flows.reset.link_is_valid(token_a) is False
    assert flows.reset.execute(token_a, "another-pass") == Rejected(RejectionReason.INVALID_LINK)

    assert flows.login.execute(Credentials("alice", "wonderland-1")) == Rejected(
        RejectionReason.INVALID_CREDENTIALS
    )
    assert flows.login.execute(Credentials("alice", "queen-of-hearts")) == Verified(user_id)


def test_expired_reset_link_is_rejected(
    flows: Flows, notifier: RecordingNotifier, clock: FrozenClock
) -> None:
    _signed_up_and_activated(flows, notifier)
    flows.forgot.execute("alice")
    token_id = notifier.last_link("/reset/")
    clock.advance(TOKEN_TTL)

    assert flows.reset.link_is_valid(token_id) is False
    assert flows.reset.execute(token_id, "queen-of-hearts") == Rejected(
        RejectionReason.INVALID_LINK
    )


def test_second_forgot_request_invalidates_first_link(
    flows: Flows, notifier: RecordingNotifier
) -> None:
    _signed_up_and_activated(flows, notifier)
    flows.forgot.execute("alice")
    first = notifier.last_link("/reset/")
    flows.forgot.execute("alice")
    second = notifier.last_link("/reset/")

    assert flows.reset.execute(first, "queen-of-hearts") == Rejected(RejectionReason.INVALID_LINK)
    assert isinstance(flows.reset.execute(second, "queen-of-hearts"), Reset)


def test_concurrent_resets_with_same_token(flows: Flows, notifier: RecordingNotifier) -> None:
    _signed_up_and_activated(flows, notifier)
    flows.forgot.execute("alice")
    token_id = notifier.last_link("/reset/")

    workers = 8
    barrier = threading.Barrier(workers)
    results: list[object] = []
    lock = threading.Lock()

    def submit(index: int) -> None:
        barrier.wait()
        outcome = flows.reset.execute(token_id, f"new-password-{index}")
        with lock:
            results.append(outcome)

    threads = [threading.Thread(target=submit, args=(i,)) for i in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    succeeded = [r for r in results if isinstance(r, Reset)]
    rejected = [r for r in results if r == Rejected(RejectionReason.INVALID_LINK)]
    assert len(succeeded) == 1
    assert len(rejected) == workers - 1


def test_notification_failure_does_not_undo_token(
    users: InMemoryUserRepository,
    tokens: AuthTokenStore,
    token_repository: InMemoryAuthTokenRepository,
    hasher: BcryptPasswordHasher,
    clock: FrozenClock,
) -> None:
    failing = FailingNotifier()
    mailer = AccountMailer(failing, LinkBuilder(BASE_URL), sender="no-reply@example.test")
    flows = Flows(users, tokens, hasher, mailer, clock)

    outcome = flows.register.execute(ALICE)
    assert isinstance(outcome, AwaitingActivation)
    user_id = outcome.user_id

    assert isinstance(flows.forgot.execute("alice"), LinkSent)
    assert failing.attempts == 2
    assert sorted(t.purpose.value for t in token_repository.tokens.values()) == [
        "activation",
        "password_reset",
    ]
    assert users.find_by_id(user_id) is not None


class BlockedRelay(RecordingNotifier):
    """Holds every delivery until ``release`` is set."""

    def __init__(self) -> None:
        super().__init__()
        self.release = threading.Event()

    def send(self, to: str, subject: str, body: str) -> None:
        self.release.wait(timeout=10)
        super().send(to, subject, body)


def test_slow_mail_relay_does_not_delay_forgot_or_duplicate_signup(
    users: InMemoryUserRepository,
    tokens: AuthTokenStore,
    hasher: BcryptPasswordHasher,
    clock: FrozenClock,
) -> None:
    relay = BlockedRelay()
    background = BackgroundNotifier(relay)
    mailer = AccountMailer(background, LinkBuilder(BASE_URL), sender="no-reply@example.test")
    flows = Flows(users, tokens, hasher, mailer, clock)
    flows.register.execute(ALICE)

    started = time.monotonic()
    known = flows.forgot.execute("alice")
    unknown = flows.forgot.execute("mad-hatter")
    duplicate = flows.register.execute(replace(ALICE, login="alice2"))
    elapsed = time.monotonic() - started

    assert isinstance(known, LinkSent)
    assert isinstance(unknown, Silent)
    assert duplicate == Rejected(RejectionReason.DUPLICATE_EMAIL)
    assert elapsed < 2
    assert relay.sent == []

    relay.release.set()
    background.close()

    assert len(relay.sent) == 3
    assert "/reset/" in relay.sent[1].body
    assert relay.sent[2].subject == "You already have an account"


def test_rejected_names_are_logged_as_fingerprints(
    flows: Flows, notifier: RecordingNotifier
) -> None:
    _signed_up_and_activated(flows, notifier)

    lines: list[str] = []
    sink = logger.add(lambda message: lines.append(str(message)), level="DEBUG")
    try:
        flows.login.execute(Credentials("cheshire-cat", "whatever-pass"))
        flows.forgot.execute("dormouse")
        flows.resend.execute("caterpillar")
        flows.register.execute(replace(ALICE, email="second@example.test"))
    finally:
        logger.remove(sink)

    output = "".join(lines)
    for name in ("cheshire-cat", "dormouse", "caterpillar"):
        assert name not in output
        assert fingerprint(name) in output
    assert "login=alice " not in output
