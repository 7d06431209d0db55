# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

"""Transaction boundary shared by the user and token repositories."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import AbstractContextManager, contextmanager
from dataclasses import dataclass, field
from http import HTTPStatus

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from authflow.infrastructure.db.session import SessionFactory
from authflow.shared.errors import InfrastructureError
from authflow.shared.logging import logger


@dataclass(slots=True)
class SqlAlchemyUnitOfWork(AbstractContextManager):
    """One session per repository call: commit on clean exit, roll back otherwise.

    Domain errors raised inside the block roll back like any other
    exception and propagate unchanged.
    """

    session_factory: SessionFactory
    _session: Session | None = field(default=None, init=False)

    def __enter__(self) -> SqlAlchemyUnitOfWork:
        self._session = self.session_factory()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        session = self.session
        try:
            if exc:
                logger.debug(f"uow: rollback due to {exc_type.__name__}")
                session.rollback()
            else:
                session.commit()
        except Exception:
            logger.exception("uow: commit failed, rolling back")
            session.rollback()
            raise
        finally:
            session.close()
            self._session = None

    @property
    def session(self) -> Session:
        if self._session is None:
            raise RuntimeError("UnitOfWork session accessed before entering context")
        return self._session


@contextmanager
def unit_of_work_scope(factory: SessionFactory) -> Iterator[Session]:
    """Run a block in one transaction.

    A lost connection or locked database surfaces as a 503
    ``database_unavailable``; integrity errors are left to the repositories,
    which turn them into duplicate or collision errors.
    """
    try:
        with SqlAlchemyUnitOfWork(factory) as uow:
            yield uow.session
    except OperationalError as exc:
        logger.error(f"uow: database unavailable ({type(exc.orig).__name__})")
        raise InfrastructureError(
            "database_unavailable", status=HTTPStatus.SERVICE_UNAVAILABLE
        ) from exc
