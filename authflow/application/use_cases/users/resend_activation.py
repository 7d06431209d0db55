# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

from datetime import timedelta

from authflow.application.interfaces import AccountNotices
from authflow.application.services.auth_tokens import AuthTokenStore
from authflow.domain.users.entities import TokenPurpose
from authflow.domain.users.repositories import UserRepository
from authflow.shared.logging import fingerprint, logger

from .outcomes import ActivationResent


class ResendActivationUseCase:
    """Re-issue the activation link of an unactivated account.

    The result is the same whether the login is unknown, already active or
    a mail went out.
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

    def execute(self, login: str) -> ActivationResent:
        user = self._users.find_by_login(login)
        if user is None or user.id is None:
            logger.info(f"auth.resend: no account login={fingerprint(login)}")
        elif user.activated:
            logger.info(f"auth.resend: already active user_id={user.id}")
        else:
            token = self._tokens.issue(user.id, TokenPurpose.ACTIVATION, self._token_ttl)
            self._mailer.send_activation(user, token)
            logger.info(f"auth.resend: link sent user_id={user.id}")
        return ActivationResent()
