# Overview: Transaction boundary helpers; row locking, retry on concurrency failures, rollback on error.

from __future__ import annotations

import time
from typing import Callable, TypeVar

from flask import current_app
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import PersistenceFailure, WorkshopError
from ..extensions import db

T = TypeVar("T")

# Deadlocks, lock timeouts and optimistic-lock conflicts are worth a retry
RETRYABLE_ERRORS = (OperationalError, StaleDataError)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_in_transaction(func: Callable[[], T], *, attempts: int | None = None, backoff_base: float = 0.05) -> T:
    """
    Execute ``func`` and commit, as one all-or-nothing unit.

    - WorkshopError: rollback and re-raise unchanged (business rule failure).
    - OperationalError / StaleDataError: rollback and re-run ``func`` from the
      start with exponential backoff; after the last attempt PersistenceFailure.
    - Any other SQLAlchemyError: rollback, PersistenceFailure.
    - Anything else: rollback and re-raise.

    ``func`` must only flush, never commit, so a retry starts from clean state.
    """
    if attempts is None:
        attempts = current_app.config.get("COMMIT_RETRY_ATTEMPTS", 3)

    for attempt in range(1, attempts + 1):
        try:
            result = func()
            db.session.commit()
            return result
        except WorkshopError:
            db.session.rollback()
            raise
        except RETRYABLE_ERRORS as exc:
            db.session.rollback()
            if attempt >= attempts:
                raise PersistenceFailure(f"Giving up after {attempts} attempts: {exc}") from exc
            current_app.logger.warning(
                "Concurrency conflict on attempt %s/%s, retrying: %s", attempt, attempts, exc
            )
            time.sleep(backoff_base * (2 ** (attempt - 1)))
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise PersistenceFailure(str(exc)) from exc
        except Exception:
            db.session.rollback()
            raise

    raise PersistenceFailure("Transaction was not attempted")
