# Overview: Transaction boundary for service-layer operations.

from __future__ import annotations

import logging
from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError

from ..errors import StoreError
from ..extensions import db


logger = logging.getLogger(__name__)


@contextmanager
def unit_of_work(description: str):
    """
    Run one logical operation as a single database transaction.

    Commits once on clean exit. On SQLAlchemyError the session is rolled back
    and StoreError is raised with the original error chained. Domain errors
    roll back and propagate unchanged. Nothing is retried.
    """
    try:
        yield db.session
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error("Store failure during %s: %s", description, exc)
        raise StoreError(f"Failed to {description}") from exc
    except Exception:
        db.session.rollback()
        raise


@contextmanager
def read_guard(description: str):
    """Read-only queries: driver failures surface as StoreError."""
    try:
        yield db.session
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StoreError(f"Failed to {description}") from exc
