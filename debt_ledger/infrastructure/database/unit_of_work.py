"""Transaction scope for multi-row ledger mutations"""

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


@contextmanager
def transaction_scope(db: Session) -> Iterator[Session]:
    """
    Run a block as one atomic unit against the store.

    Commits when the block finishes, rolls back and re-raises on any
    exception so no partial allocation or orphaned payment survives.
    """
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        logger.debug("Ledger transaction rolled back", exc_info=True)
        raise
