# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

"""Single-use, time-limited tokens for activation and password reset."""

from __future__ import annotations

import secrets
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from tenacity import Retrying, retry_if_exception_type, stop_after_attempt

from authflow.domain.users.entities import AuthToken, TokenPurpose
from authflow.domain.users.exceptions import (
    TokenAlreadyConsumedError,
    TokenExpiredError,
    TokenIdCollisionError,
    TokenNotFoundError,
)
from authflow.domain.users.repositories import AuthTokenRepository
from authflow.shared.logging import fingerprint, logger

Clock = Callable[[], datetime]

# 128 bits from the OS CSPRNG, url-safe so it can sit in a link path
TOKEN_ID_BYTES = 16


def utc_now() -> datetime:
    return datetime.now(UTC)


def new_token_id() -> str:
    return secrets.token_urlsafe(TOKEN_ID_BYTES)


class AuthTokenStore:
    """Creates, looks up, validates and deletes tokens over a repository.

    Lookup (``find_by_id``) and validity (``is_valid``) are separate so the
    workflow can tell "never existed or already used" from "timed out" in its
    logs. ``consume`` is the only way a flow should use a token: it removes
    the row with one conditional delete, so of two concurrent consumers of
    the same id exactly one gets the token back.
    """

    def __init__(
        self,
        repository: AuthTokenRepository,
        *,
        clock: Clock = utc_now,
        id_factory: Callable[[], str] = new_token_id,
        id_attempts: int = 3,
    ) -> None:
        self._repository = repository
        self._clock = clock
        self._id_factory = id_factory
        self._id_attempts = max(1, id_attempts)

    def now(self) -> datetime:
        return self._clock()

    def create(self, uid: int, expiry: datetime, *, purpose: TokenPurpose) -> AuthToken:
        retrying = Retrying(
            stop=stop_after_attempt(self._id_attempts),
            retry=retry_if_exception_type(TokenIdCollisionError),
            before_sleep=lambda state: logger.warning(
                f"auth.tokens: id collision, retrying attempt={state.attempt_number}"
            ),
            reraise=True,
        )
        for attempt in retrying:
            with attempt:
                token = AuthToken(id=self._id_factory(), uid=uid, expiry=expiry, purpose=purpose)
                self._repository.add(token)
        logger.debug(
            f"auth.tokens: created token={fingerprint(token.id)} uid={uid} "
            f"purpose={purpose.value} expiry={expiry.isoformat()}"
        )
        return token

    def issue(self, uid: int, purpose: TokenPurpose, ttl: timedelta) -> AuthToken:
        """Create a token expiring ``ttl`` from now, superseding older ones."""
        superseded = self._repository.remove_for_user(uid, purpose)
        if superseded:
            logger.info(
                f"auth.tokens: superseded count={superseded} uid={uid} purpose={purpose.value}"
            )
        return self.create(uid, self.now() + ttl, purpose=purpose)

    def find_by_id(self, token_id: str) -> AuthToken | None:
        if not token_id:
            return None
        return self._repository.get(token_id)

    def delete(self, token: AuthToken) -> None:
        self._repository.remove(token.id)

    def is_valid(self, token: AuthToken) -> bool:
        return token.is_valid(self.now())

    def check(self, token_id: str, purpose: TokenPurpose) -> AuthToken:
        """Return the token if it could be consumed right now, without consuming it."""
        token = self.find_by_id(token_id)
        if token is None or token.purpose is not purpose:
            raise TokenNotFoundError()
        if not self.is_valid(token):
            self.delete(token)
            raise TokenExpiredError()
        return token

    def consume(self, token_id: str, purpose: TokenPurpose) -> AuthToken:
        token = self.check(token_id, purpose)
        if not self._repository.remove(token.id):
            raise TokenAlreadyConsumedError()
        logger.debug(f"auth.tokens: consumed token={fingerprint(token.id)} uid={token.uid}")
        return token

    def purge_expired(self) -> int:
        removed = self._repository.remove_expired(self.now())
        if removed:
            logger.info(f"auth.tokens: purged expired count={removed}")
        return removed


__all__ = ["AuthTokenStore", "Clock", "new_token_id", "utc_now"]
