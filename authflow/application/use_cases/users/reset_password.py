# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

from dataclasses import replace

from authflow.application.interfaces import AccountNotices
from authflow.application.services.auth_tokens import AuthTokenStore
from authflow.domain.users.entities import TokenPurpose
from authflow.domain.users.exceptions import TokenError
from authflow.domain.users.repositories import PasswordHasher, UserRepository
from authflow.shared.logging import fingerprint, logger

from .outcomes import Rejected, RejectionReason, Reset, ResetOutcome


class ResetPasswordUseCase:
    """ResetSubmitted -> Reset | Rejected.

    The token is consumed before the new hash is written, so of two
    concurrent submissions with the same link only one reaches the update.
    """

    def __init__(
        self,
        *,
        users: UserRepository,
        tokens: AuthTokenStore,
        password_hasher: PasswordHasher,
        mailer: AccountNotices,
    ) -> None:
        self._users = users
        self._tokens = tokens
        self._password_hasher = password_hasher
        self._mailer = mailer

    def link_is_valid(self, token_id: str) -> bool:
        try:
            self._tokens.check(token_id, TokenPurpose.PASSWORD_RESET)
        except TokenError as exc:
            logger.info(
                f"auth.reset: link check failed token={fingerprint(token_id)} reason={exc.reason}"
            )
            return False
        return True

    def execute(self, token_id: str, new_password: str) -> ResetOutcome:
        try:
            token = self._tokens.consume(token_id, TokenPurpose.PASSWORD_RESET)
        except TokenError as exc:
            logger.info(f"auth.reset: rejected token={fingerprint(token_id)} reason={exc.reason}")
            return Rejected(RejectionReason.INVALID_LINK)

        user = self._users.find_by_id(token.uid)
        if user is None:
            logger.error(f"auth.reset: token owner missing user_id={token.uid}")
            return Rejected(RejectionReason.INVALID_LINK)

        updated = replace(user, password_hash=self._password_hasher.hash(new_password))
        self._users.update(updated)
        self._mailer.send_password_changed(updated, self._tokens.now())
        logger.info(f"auth.reset: ok user_id={token.uid}")
        return Reset(user_id=token.uid)
