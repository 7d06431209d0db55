# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

from dataclasses import replace

from authflow.domain.users.entities import Credentials
from authflow.domain.users.exceptions import (
    AccountNotActivatedError,
    InvalidCredentialsError,
)
from authflow.domain.users.repositories import PasswordHasher, UserRepository
from authflow.shared.logging import fingerprint, logger

from .outcomes import LoginOutcome, Rejected, RejectionReason, Verified


class LoginUserUseCase:
    """AwaitingCredentials -> Verified | Rejected.

    A wrong password and an unknown login are indistinguishable. An
    unactivated account with the right password gets its own reason so the
    user knows to look for the activation email.
    """

    def __init__(self, *, users: UserRepository, password_hasher: PasswordHasher) -> None:
        self._users = users
        self._password_hasher = password_hasher
        self._dummy_hash = password_hasher.hash("authflow-timing-equalizer")

    def execute(self, credentials: Credentials) -> LoginOutcome:
        try:
            user_id = self._authenticate(credentials)
        except InvalidCredentialsError:
            logger.info(
                f"auth.login: rejected login={fingerprint(credentials.login)} "
                "reason=invalid_credentials"
            )
            return Rejected(RejectionReason.INVALID_CREDENTIALS)
        except AccountNotActivatedError:
            logger.info(
                f"auth.login: rejected login={fingerprint(credentials.login)} reason=not_activated"
            )
            return Rejected(RejectionReason.ACCOUNT_NOT_ACTIVATED)
        logger.info(f"auth.login: ok user_id={user_id}")
        return Verified(user_id=user_id)

    def _authenticate(self, credentials: Credentials) -> int:
        user = self._users.find_by_login(credentials.login)
        if user is None or user.id is None:
            self._password_hasher.matches(self._dummy_hash, credentials.password)
            raise InvalidCredentialsError()

        if not self._password_hasher.matches(user.password_hash, credentials.password):
            raise InvalidCredentialsError()
        if not user.activated:
            raise AccountNotActivatedError()

        if self._password_hasher.needs_rehash(user.password_hash):
            self._users.update(
                replace(user, password_hash=self._password_hasher.hash(credentials.password))
            )
            logger.info(f"auth.login: rehashed password user_id={user.id}")
        return user.id
