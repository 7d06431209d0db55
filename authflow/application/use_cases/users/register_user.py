# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta

from authflow.application.interfaces import AccountNotices
from authflow.application.services.auth_tokens import AuthTokenStore
from authflow.domain.users.entities import TokenPurpose
from authflow.domain.users.exceptions import DuplicateEmailError, DuplicateLoginError
from authflow.domain.users.repositories import PasswordHasher, UserRepository
from authflow.shared.logging import fingerprint, logger

from .outcomes import AwaitingActivation, Rejected, RejectionReason, SignUpOutcome


@dataclass(slots=True, frozen=True)
class SignUpRequest:
    login: str
    email: str
    password: str = field(repr=False)
    first_name: str = ""
    last_name: str = ""


class RegisterUserUseCase:
    """Submitted -> AwaitingActivation | Rejected.

    A taken e-mail address is not reported to the caller; the address owner
    receives an "already signed up" notice instead.
    """

    def __init__(
        self,
        *,
        users: UserRepository,
        tokens: AuthTokenStore,
        password_hasher: PasswordHasher,
        mailer: AccountNotices,
        token_ttl: timedelta,
    ) -> None:
        self._users = users
        self._tokens = tokens
        self._password_hasher = password_hasher
        self._mailer = mailer
        self._token_ttl = token_ttl

    def execute(self, request: SignUpRequest) -> SignUpOutcome:
        if self._users.find_by_login(request.login) is not None:
            logger.info(
                f"auth.signup: rejected login={fingerprint(request.login)} reason=duplicate_login"
            )
            return Rejected(RejectionReason.DUPLICATE_LOGIN)

        try:
            user = self._users.create(
                email=request.email,
                login=request.login,
                password_hash=self._password_hasher.hash(request.password),
                first_name=request.first_name,
                last_name=request.last_name,
            )
        except DuplicateLoginError:
            logger.info(
                f"auth.signup: rejected login={fingerprint(request.login)} reason=duplicate_login"
            )
            return Rejected(RejectionReason.DUPLICATE_LOGIN)
        except DuplicateEmailError:
            logger.info(
                f"auth.signup: duplicate email={fingerprint(request.email)}, sending notice"
            )
            self._mailer.send_already_signed_up(request.email)
            return Rejected(RejectionReason.DUPLICATE_EMAIL)

        if user.id is None:
            raise RuntimeError("user repository returned an unsaved user")
        token = self._tokens.issue(user.id, TokenPurpose.ACTIVATION, self._token_ttl)
        self._mailer.send_activation(user, token)
        logger.info(f"auth.signup: awaiting activation user_id={user.id}")
        return AwaitingActivation(user_id=user.id, email=user.email)
