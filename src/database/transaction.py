"""Unit-of-work helpers over an existing session.

Multi-row changes (replacing a user's roles, creating a role with its
grants, moving a reporting edge) run inside one of these, so readers see
either the whole change or none of it.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Generator

from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


class TransactionManager:
    """
    Commit-or-rollback scope bound to a session the caller owns.

    The manager never opens or closes the session itself; request handlers
    and the seed command do that.

    Usage:
        with TransactionManager(session):
            session.add(role)
        # committed here, or rolled back if the block raised

        tm = TransactionManager(session)
        tm.begin()
        try:
            session.add(role)
            tm.commit()
        except Exception:
            tm.rollback()
            raise
    """

    def __init__(self, session: Session):
        self._session = session
        self._open = False

    def begin(self) -> Session:
        if self._open:
            raise RuntimeError("Transaction already active")
        self._open = True
        logger.debug("Unit of work opened")
        return self._session

    def commit(self) -> None:
        if not self._open:
            raise RuntimeError("No active transaction to commit")
        try:
            self._session.commit()
        finally:
            self._open = False
        logger.debug("Unit of work committed")

    def rollback(self) -> None:
        """Discard pending changes; a no-op when nothing is open."""
        if not self._open:
            return
        self._session.rollback()
        self._open = False
        logger.debug("Unit of work rolled back")

    @property
    def session(self) -> Session:
        return self._session

    @property
    def is_active(self) -> bool:
        return self._open

    def __enter__(self) -> Session:
        return self.begin()

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        if exc_type is None:
            self.commit()
        else:
            logger.debug(f"Unit of work aborted by {exc_type.__name__}")
            self.rollback()
        return False


@contextmanager
def transaction(session: Session) -> Generator[Session, None, None]:
    """
    Function form of ``TransactionManager`` for scripts.

    Usage:
        with transaction(session):
            session.add(permission)
    """
    with TransactionManager(session) as active:
        yield active
