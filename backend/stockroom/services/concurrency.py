# Overview: Transaction helpers shared by every service that writes stock or handover state.

from __future__ import annotations

import logging
import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db

logger = logging.getLogger(__name__)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations and refresh the rows.

    populate_existing() makes sure a row already in the identity map is
    re-read, so guards always see the committed value.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; there the version_id columns
    on Product and HandOver are what catches a concurrent writer.
    """
    return query.with_for_update().populate_existing()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.05):
    """
    Execute a unit of work, retrying on concurrency failures only.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). Each retry starts from a rolled-back
    session, so func re-reads current state and re-evaluates its guards.

    Any other exception (including domain errors) rolls the session back and
    propagates unchanged: a failed unit of work never leaves a partial write
    behind in the session.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                logger.warning("Giving up after %d attempts: %s", attempts, exc)
                raise
            logger.warning("Concurrent update detected (attempt %d/%d), retrying: %s",
                           attempt + 1, attempts, exc)
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
