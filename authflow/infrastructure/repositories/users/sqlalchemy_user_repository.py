# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

import hashlib
from datetime import UTC, datetime

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from authflow.domain.users.entities import AuthToken as DomainAuthToken
from authflow.domain.users.entities import TokenPurpose
from authflow.domain.users.entities import User as DomainUser
from authflow.domain.users.exceptions import (
    DuplicateEmailError,
    DuplicateLoginError,
    TokenIdCollisionError,
    UserNotFoundError,
)
from authflow.domain.users.repositories import AuthTokenRepository, UserRepository
from authflow.infrastructure.db.models import AuthToken, User
from authflow.infrastructure.db.session import SessionFactory
from authflow.infrastructure.unit_of_work import unit_of_work_scope


def _as_utc(value: datetime) -> datetime:
    # SQLite drops tzinfo on the way back
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def hash_token_id(token_id: str) -> str:
    return hashlib.sha256(token_id.encode("utf-8")).hexdigest()


def _to_domain(row: User) -> DomainUser:
    return DomainUser(
        id=row.id,
        login=row.login,
        email=row.email,
        password_hash=row.password_hash,
        activated=bool(row.activated),
        first_name=row.first_name or "",
        last_name=row.last_name or "",
    )


class SqlAlchemyUserRepository(UserRepository):
    def __init__(self, session_factory: SessionFactory):
        self._session_factory = session_factory

    def find_by_login(self, login: str) -> DomainUser | None:
        with unit_of_work_scope(self._session_factory) as session:
            row = session.scalars(select(User).where(User.login == login)).first()
            return _to_domain(row) if row else None

    def find_by_id(self, user_id: int) -> DomainUser | None:
        with unit_of_work_scope(self._session_factory) as session:
            row = session.get(User, user_id)
            return _to_domain(row) if row else None

    def create(
        self,
        *,
        email: str,
        login: str,
        password_hash: str,
        first_name: str,
        last_name: str,
    ) -> DomainUser:
        with unit_of_work_scope(self._session_factory) as session:
            self._raise_if_taken(session, login=login, email=email)

        try:
            with unit_of_work_scope(self._session_factory) as session:
                row = User(
                    login=login,
                    email=email,
                    password_hash=password_hash,
                    activated=False,
                    first_name=first_name,
                    last_name=last_name,
                )
                session.add(row)
                session.flush()
                created = _to_domain(row)
        except IntegrityError:
            # lost a race with a concurrent signup; find out which key collided
            with unit_of_work_scope(self._session_factory) as session:
                self._raise_if_taken(session, login=login, email=email)
            raise
        return created

    def update(self, user: DomainUser) -> None:
        if user.id is None:
            raise UserNotFoundError()
        with unit_of_work_scope(self._session_factory) as session:
            row = session.get(User, user.id)
            if row is None:
                raise UserNotFoundError(user.id)
            row.email = user.email
            row.password_hash = user.password_hash
            row.activated = user.activated
            row.first_name = user.first_name
            row.last_name = user.last_name

    @staticmethod
    def _raise_if_taken(session: Session, *, login: str, email: str) -> None:
        if session.scalars(select(User.id).where(User.login == login)).first() is not None:
            raise DuplicateLoginError()
        if session.scalars(select(User.id).where(User.email == email)).first() is not None:
            raise DuplicateEmailError()


class SqlAlchemyAuthTokenRepository(AuthTokenRepository):
    """Tokens keyed by the SHA-256 of their id.

    ``remove`` is a single ``DELETE`` whose row count decides which of
    several concurrent consumers owns the token.
    """

    def __init__(self, session_factory: SessionFactory):
        self._session_factory = session_factory

    def add(self, token: DomainAuthToken) -> None:
        try:
            with unit_of_work_scope(self._session_factory) as session:
                if session.get(AuthToken, hash_token_id(token.id)) is not None:
                    raise TokenIdCollisionError()
                session.add(
                    AuthToken(
                        token_hash=hash_token_id(token.id),
                        user_id=token.uid,
                        purpose=token.purpose.value,
                        expires_at=_as_utc(token.expiry),
                    )
                )
        except IntegrityError as exc:
            with unit_of_work_scope(self._session_factory) as session:
                if session.get(AuthToken, hash_token_id(token.id)) is not None:
                    raise TokenIdCollisionError() from exc
            raise

    def get(self, token_id: str) -> DomainAuthToken | None:
        with unit_of_work_scope(self._session_factory) as session:
            row = session.get(AuthToken, hash_token_id(token_id))
            if row is None:
                return None
            return DomainAuthToken(
                id=token_id,
                uid=row.user_id,
                expiry=_as_utc(row.expires_at),
                purpose=TokenPurpose(row.purpose),
            )

    def remove(self, token_id: str) -> bool:
        with unit_of_work_scope(self._session_factory) as session:
            result = session.execute(
                delete(AuthToken).where(AuthToken.token_hash == hash_token_id(token_id))
            )
            return result.rowcount == 1

    def remove_for_user(self, user_id: int, purpose: TokenPurpose) -> int:
        with unit_of_work_scope(self._session_factory) as session:
            result = session.execute(
                delete(AuthToken).where(
                    AuthToken.user_id == user_id, AuthToken.purpose == purpose.value
                )
            )
            return result.rowcount

    def remove_expired(self, now: datetime) -> int:
        with unit_of_work_scope(self._session_factory) as session:
            result = session.execute(delete(AuthToken).where(AuthToken.expires_at <= _as_utc(now)))
            return result.rowcount
