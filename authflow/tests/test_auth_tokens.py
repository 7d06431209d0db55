from __future__ import annotations

from datetime import timedelta
from itertools import chain, repeat

import pytest
from conftest import FrozenClock, InMemoryAuthTokenRepository

from authflow.application.services.auth_tokens import AuthTokenStore, new_token_id
from authflow.domain.users.entities import TokenPurpose
from authflow.domain.users.exceptions import (
    TokenAlreadyConsumedError,
    TokenError,
    TokenExpiredError,
    TokenIdCollisionError,
    TokenNotFoundError,
)


def test_token_ids_are_long_and_unique() -> None:
    ids = {new_token_id() for _ in range(200)}

    assert len(ids) == 200
    assert all(len(token_id) >= 22 for token_id in ids)


def test_created_token_is_found_and_valid_until_expiry(
    tokens: AuthTokenStore, clock: FrozenClock
) -> None:
    token = tokens.create(1, clock.now + timedelta(hours=1), purpose=TokenPurpose.ACTIVATION)

    found = tokens.find_by_id(token.id)
    assert found == token
    assert tokens.is_valid(token)

    clock.advance(timedelta(minutes=59))
    assert tokens.is_valid(token)

    clock.advance(timedelta(minutes=1))
    assert not tokens.is_valid(token)
    # expiry alone invalidates; the row is still there
    assert tokens.find_by_id(token.id) is not None


def test_delete_is_idempotent(tokens: AuthTokenStore, clock: FrozenClock) -> None:
    token = tokens.create(1, clock.now + timedelta(hours=1), purpose=TokenPurpose.ACTIVATION)

    tokens.delete(token)
    tokens.delete(token)

    assert tokens.find_by_id(token.id) is None


def test_find_by_empty_id_returns_none(tokens: AuthTokenStore) -> None:
    assert tokens.find_by_id("") is None


def test_consume_is_single_use(tokens: AuthTokenStore) -> None:
    token = tokens.issue(7, TokenPurpose.PASSWORD_RESET, timedelta(hours=1))

    consumed = tokens.consume(token.id, TokenPurpose.PASSWORD_RESET)
    assert consumed.uid == 7

    with pytest.raises(TokenNotFoundError):
        tokens.consume(token.id, TokenPurpose.PASSWORD_RESET)


def test_consume_expired_token_raises_and_removes_it(
    tokens: AuthTokenStore, clock: FrozenClock, token_repository: InMemoryAuthTokenRepository
) -> None:
    token = tokens.issue(7, TokenPurpose.ACTIVATION, timedelta(hours=1))
    clock.advance(timedelta(hours=2))

    with pytest.raises(TokenExpiredError):
        tokens.consume(token.id, TokenPurpose.ACTIVATION)
    assert token.id not in token_repository.tokens


def test_token_for_another_purpose_is_not_found(tokens: AuthTokenStore) -> None:
    token = tokens.issue(7, TokenPurpose.ACTIVATION, timedelta(hours=1))

    with pytest.raises(TokenNotFoundError):
        tokens.consume(token.id, TokenPurpose.PASSWORD_RESET)
    assert tokens.find_by_id(token.id) is not None


def test_lost_delete_race_reports_already_consumed(clock: FrozenClock) -> None:
    class RacingRepository(InMemoryAuthTokenRepository):
        def remove(self, token_id: str) -> bool:
            # another request deletes the row between our read and our delete
            super().remove(token_id)
            return super().remove(token_id)

    store = AuthTokenStore(RacingRepository(), clock=clock)
    token = store.issue(1, TokenPurpose.PASSWORD_RESET, timedelta(hours=1))

    with pytest.raises(TokenAlreadyConsumedError) as excinfo:
        store.consume(token.id, TokenPurpose.PASSWORD_RESET)
    assert isinstance(excinfo.value, TokenError)
    assert excinfo.value.code == "invalid_link"


def test_issue_supersedes_previous_token_of_same_purpose(tokens: AuthTokenStore) -> None:
    first = tokens.issue(3, TokenPurpose.PASSWORD_RESET, timedelta(hours=1))
    activation = tokens.issue(3, TokenPurpose.ACTIVATION, timedelta(hours=1))
    second = tokens.issue(3, TokenPurpose.PASSWORD_RESET, timedelta(hours=1))

    assert tokens.find_by_id(first.id) is None
    assert tokens.find_by_id(second.id) is not None
    assert tokens.find_by_id(activation.id) is not None


def test_id_collision_is_retried(
    token_repository: InMemoryAuthTokenRepository, clock: FrozenClock
) -> None:
    ids = chain(["dup-dup-dup-dup-dup", "dup-dup-dup-dup-dup"], repeat("fresh-fresh-fresh-id"))
    store = AuthTokenStore(token_repository, clock=clock, id_factory=lambda: next(ids))

    first = store.create(1, clock.now + timedelta(hours=1), purpose=TokenPurpose.ACTIVATION)
    second = store.create(2, clock.now + timedelta(hours=1), purpose=TokenPurpose.ACTIVATION)

    assert first.id == "dup-dup-dup-dup-dup"
    assert second.id == "fresh-fresh-fresh-id"
    assert token_repository.tokens[first.id].uid == 1


def test_persistent_id_collision_gives_up(
    token_repository: InMemoryAuthTokenRepository, clock: FrozenClock
) -> None:
    store = AuthTokenStore(
        token_repository, clock=clock, id_factory=lambda: "always-the-same-id", id_attempts=2
    )
    store.create(1, clock.now + timedelta(hours=1), purpose=TokenPurpose.ACTIVATION)

    with pytest.raises(TokenIdCollisionError):
        store.create(2, clock.now + timedelta(hours=1), purpose=TokenPurpose.ACTIVATION)


def test_purge_expired_removes_only_past_tokens(
    tokens: AuthTokenStore, clock: FrozenClock, token_repository: InMemoryAuthTokenRepository
) -> None:
    short = tokens.issue(1, TokenPurpose.ACTIVATION, timedelta(minutes=5))
    long = tokens.issue(2, TokenPurpose.ACTIVATION, timedelta(hours=5))
    clock.advance(timedelta(hours=1))

    assert tokens.purge_expired() == 1
    assert short.id not in token_repository.tokens
    assert long.id in token_repository.tokens
