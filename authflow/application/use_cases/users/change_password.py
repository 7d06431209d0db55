# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

from dataclasses import replace

from authflow.application.interfaces import AccountNotices
from authflow.application.services.auth_tokens import Clock, utc_now
from authflow.domain.users.exceptions import UserNotFoundError
from authflow.domain.users.repositories import PasswordHasher, UserRepository
from authflow.shared.logging import logger

from .outcomes import Changed


class ChangePasswordUseCase:
    """Overwrite the hash of an already authenticated user.

    The caller's session guarantees the user exists; a missing record is an
    integrity fault and propagates.
    """

    def __init__(
        self,
        *,
        users: UserRepository,
        password_hasher: PasswordHasher,
        mailer: AccountNotices,
        clock: Clock = utc_now,
    ) -> None:
        self._users = users
        self._password_hasher = password_hasher
        self._mailer = mailer
        self._clock = clock

    def execute(self, user_id: int, new_password: str) -> Changed:
        user = self._users.find_by_id(user_id)
        if user is None:
            raise UserNotFoundError(user_id)

        updated = replace(user, password_hash=self._password_hasher.hash(new_password))
        self._users.update(updated)
        self._mailer.send_password_changed(updated, self._clock())
        logger.info(f"auth.change: ok user_id={user_id}")
        return Changed(user_id=user_id)
