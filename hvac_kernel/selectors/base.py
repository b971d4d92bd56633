"""
Module: hvac_kernel.selectors.base
Responsibility: Abstract base class for read-only selectors.  Selectors are the
    query side: they load fresh snapshots through the PersistenceStore and run
    the pure engines over them.
Architecture position: Kernel > Selectors.  May import db/, domain/ and
    hvac_engines.  MUST NOT import services/.

Invariants enforced:
    - Read-only: no add, delete, flush or commit.
    - No caching: every call re-reads and re-derives, so a stage computed
      from dates that changed a moment ago is never served stale.
    - Returns DTOs and engine results, never ORM rows.
"""

from abc import ABC

from sqlalchemy.orm import Session

from hvac_kernel.db.store import PersistenceStore, SqlAlchemyStore
from hvac_kernel.domain.clock import Clock, SystemClock


class BaseSelector(ABC):
    """
    Abstract base class for all selectors.

    Contract:
        Accepts a Session from the caller and performs read-only work on it.
    """

    def __init__(
        self,
        session: Session,
        store: PersistenceStore | None = None,
        clock: Clock | None = None,
    ):
        self.session = session
        self.store = store or SqlAlchemyStore(session)
        self.clock = clock or SystemClock()
