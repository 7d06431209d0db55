# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

from dataclasses import replace

from authflow.application.services.auth_tokens import AuthTokenStore
from authflow.domain.users.entities import TokenPurpose
from authflow.domain.users.exceptions import TokenError
from authflow.domain.users.repositories import UserRepository
from authflow.shared.logging import fingerprint, logger

from .outcomes import Activated, ActivationOutcome, Rejected, RejectionReason


class ActivateUserUseCase:
    def __init__(self, *, users: UserRepository, tokens: AuthTokenStore) -> None:
        self._users = users
        self._tokens = tokens

    def execute(self, token_id: str) -> ActivationOutcome:
        try:
            token = self._tokens.consume(token_id, TokenPurpose.ACTIVATION)
        except TokenError as exc:
            logger.info(
                f"auth.activate: rejected token={fingerprint(token_id)} reason={exc.reason}"
            )
            return Rejected(RejectionReason.INVALID_LINK)

        user = self._users.find_by_id(token.uid)
        if user is None:
            logger.error(f"auth.activate: token owner missing user_id={token.uid}")
            return Rejected(RejectionReason.INVALID_LINK)

        if not user.activated:
            self._users.update(replace(user, activated=True))
        logger.info(f"auth.activate: ok user_id={token.uid}")
        return Activated(user_id=token.uid)
