# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

from functools import cached_property

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from authflow.application.interfaces import NotificationPort
from authflow.application.services.auth_tokens import AuthTokenStore, Clock, utc_now
from authflow.application.services.mailer import AccountMailer, LinkBuilder
from authflow.application.services.password_hashing import BcryptPasswordHasher
from authflow.application.use_cases.users.activate_user import ActivateUserUseCase
from authflow.application.use_cases.users.change_password import ChangePasswordUseCase
from authflow.application.use_cases.users.forgot_password import ForgotPasswordUseCase
from authflow.application.use_cases.users.login_user import LoginUserUseCase
from authflow.application.use_cases.users.logout_user import LogoutUserUseCase
from authflow.application.use_cases.users.register_user import RegisterUserUseCase
from authflow.application.use_cases.users.resend_activation import ResendActivationUseCase
from authflow.application.use_cases.users.reset_password import ResetPasswordUseCase
from authflow.infrastructure.audit import AuditTrail
from authflow.infrastructure.db import create_db_engine, create_session_factory, init_db
from authflow.infrastructure.notifications import BackgroundNotifier, build_notifier
from authflow.infrastructure.repositories.users.sqlalchemy_user_repository import (
    SqlAlchemyAuthTokenRepository,
    SqlAlchemyUserRepository,
)
from authflow.infrastructure.tasks.token_sweeper import TokenSweeper
from authflow.interfaces.http.controllers.auth_controller import AuthController
from authflow.shared.config import AppConfig


class Container:
    """Wires the application from one ``AppConfig``.

    ``notifier`` and ``clock`` can be overridden, mainly by tests.
    """

    def __init__(
        self,
        config: AppConfig,
        *,
        notifier: NotificationPort | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._config = config
        self._notifier_override = notifier
        self._clock = clock

    @property
    def config(self) -> AppConfig:
        return self._config

    @cached_property
    def engine(self) -> Engine:
        engine = create_db_engine(self._config.database)
        init_db(engine)
        return engine

    @cached_property
    def session_factory(self) -> sessionmaker[Session]:
        return create_session_factory(self.engine)

    @cached_property
    def password_hasher(self) -> BcryptPasswordHasher:
        return BcryptPasswordHasher(self._config.security.password_log_rounds)

    @cached_property
    def user_repository(self) -> SqlAlchemyUserRepository:
        return SqlAlchemyUserRepository(self.session_factory)

    @cached_property
    def auth_token_repository(self) -> SqlAlchemyAuthTokenRepository:
        return SqlAlchemyAuthTokenRepository(self.session_factory)

    @cached_property
    def auth_tokens(self) -> AuthTokenStore:
        return AuthTokenStore(self.auth_token_repository, clock=self._clock)

    @cached_property
    def notifier(self) -> NotificationPort:
        return self._notifier_override or build_notifier(self._config.mail)

    def close(self) -> None:
        """Stop background workers; queued mail is delivered first."""
        if "token_sweeper" in self.__dict__:
            self.token_sweeper.stop()
        notifier = self.__dict__.get("notifier")
        if isinstance(notifier, BackgroundNotifier):
            notifier.close()

    @cached_property
    def mailer(self) -> AccountMailer:
        return AccountMailer(
            self.notifier,
            LinkBuilder(self._config.public_base_url),
            sender=self._config.mail.smtp_from,
        )

    @cached_property
    def audit(self) -> AuditTrail:
        return AuditTrail(self.session_factory)

    @cached_property
    def token_sweeper(self) -> TokenSweeper:
        return TokenSweeper(self.auth_tokens, self._config.security.token_sweep_interval)

    @cached_property
    def register_user_use_case(self) -> RegisterUserUseCase:
        return RegisterUserUseCase(
            users=self.user_repository,
            tokens=self.auth_tokens,
            password_hasher=self.password_hasher,
            mailer=self.mailer,
            token_ttl=self._config.security.token_ttl,
        )

    @cached_property
    def activate_user_use_case(self) -> ActivateUserUseCase:
        return ActivateUserUseCase(users=self.user_repository, tokens=self.auth_tokens)

    @cached_property
    def resend_activation_use_case(self) -> ResendActivationUseCase:
        return ResendActivationUseCase(
            users=self.user_repository,
            tokens=self.auth_tokens,
            mailer=self.mailer,
            token_ttl=self._config.security.token_ttl,
        )

    @cached_property
    def login_user_use_case(self) -> LoginUserUseCase:
        return LoginUserUseCase(users=self.user_repository, password_hasher=self.password_hasher)

    @cached_property
    def logout_user_use_case(self) -> LogoutUserUseCase:
        return LogoutUserUseCase()

    @cached_property
    def change_password_use_case(self) -> ChangePasswordUseCase:
        return ChangePasswordUseCase(
            users=self.user_repository,
            password_hasher=self.password_hasher,
            mailer=self.mailer,
            clock=self._clock,
        )

    @cached_property
    def forgot_password_use_case(self) -> ForgotPasswordUseCase:
        return ForgotPasswordUseCase(
            users=self.user_repository,
            tokens=self.auth_tokens,
            mailer=self.mailer,
            token_ttl=self._config.security.token_ttl,
        )

    @cached_property
    def reset_password_use_case(self) -> ResetPasswordUseCase:
        return ResetPasswordUseCase(
            users=self.user_repository,
            tokens=self.auth_tokens,
            password_hasher=self.password_hasher,
            mailer=self.mailer,
        )

    @cached_property
    def auth_controller(self) -> AuthController:
        return AuthController(
            register_use_case=self.register_user_use_case,
            activate_use_case=self.activate_user_use_case,
            resend_activation_use_case=self.resend_activation_use_case,
            login_use_case=self.login_user_use_case,
            logout_use_case=self.logout_user_use_case,
            change_password_use_case=self.change_password_use_case,
            forgot_password_use_case=self.forgot_password_use_case,
            reset_password_use_case=self.reset_password_use_case,
            audit=self.audit,
            security=self._config.security,
        )
