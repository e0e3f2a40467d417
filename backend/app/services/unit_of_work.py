"""
services/unit_of_work.py — Commit-or-rollback scope for one mutating request.

Routes wrap their single service call in unit_of_work(db.session). Services
only flush; this is where the database transaction ends. Either every write
of the block lands (transaction row, balance rows, ledger rows, group
counters) or none does.

A stale optimistic version token surfaces from SQLAlchemy as StaleDataError
during flush or commit. It is turned into CONCURRENT_MODIFICATION (409) and
not retried: the client re-reads and decides.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from backend.app.errors import AppError, ErrorCode


logger = logging.getLogger(__name__)


@contextmanager
def unit_of_work(session: Session) -> Iterator[Session]:
    try:
        yield session
        session.commit()
    except StaleDataError as exc:
        session.rollback()
        logger.warning("Concurrent modification detected: %s", exc)
        raise AppError(
            ErrorCode.CONCURRENT_MODIFICATION,
            "This record was changed by someone else. Reload it and try again.",
            409,
        ) from exc
    except Exception:
        session.rollback()
        raise
