# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

from datetime import timedelta

from authflow.application.interfaces import AccountNotices
from authflow.application.services.auth_tokens import AuthTokenStore
from authflow.domain.users.entities import TokenPurpose
from authflow.domain.users.repositories import UserRepository
from authflow.shared.logging import fingerprint, logger

from .outcomes import ForgotOutcome, LinkSent, Silent


class ForgotPasswordUseCase:
    """ForgotSubmitted -> LinkSent | Silent.

    Both outcomes carry the same message key and must be rendered the same
    way; only the logs tell them apart.
    """

    def __init__(
        self,
        *,
        users: UserRepository,
        tokens: AuthTokenStore,
        mailer: AccountNotices,
        token_ttl: timedelta,
    ) -> None:
        self._users = users
        self._tokens = tokens
        self._mailer = mailer
        self._token_ttl = token_ttl

    def execute(self, login: str) -> ForgotOutcome:
        user = self._users.find_by_login(login)
        if user is None or user.id is None:
            logger.info(f"auth.forgot: no account login={fingerprint(login)}")
            return Silent()

        token = self._tokens.issue(user.id, TokenPurpose.PASSWORD_RESET, self._token_ttl)
        self._mailer.send_password_reset(user, token)
        logger.info(f"auth.forgot: link sent user_id={user.id}")
        return LinkSent()
