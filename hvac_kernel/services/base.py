"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Common constructor for every mutation service: the caller's SQLAlchemy
    ``Session``, the PersistenceStore all reads and writes go through, and
    the injected Clock.

Architecture position:
    Kernel > Services -- imperative shell.

Invariants enforced:
    - Services flush within the caller's transaction and never commit or
      roll back.  ``session_scope()`` (or the caller's own transaction) owns
      the unit of work, so a failed mutation leaves nothing behind once the
      caller rolls back.
    - Services issue no queries of their own; ``self.store`` does.
"""

from abc import ABC
from uuid import UUID

from sqlalchemy.orm import Session

from hvac_kernel.db.store import PersistenceStore, SqlAlchemyStore
from hvac_kernel.domain.clock import Clock, SystemClock


class BaseService(ABC):
    """
    Abstract base class for all kernel services.

    Contract:
        Accepts a session from the caller.  ``store`` defaults to a
        SqlAlchemyStore over that session; tests and alternative backends
        may pass their own.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide read views; those live in hvac_kernel/selectors/.
    """

    def __init__(
        self,
        session: Session,
        store: PersistenceStore | None = None,
        clock: Clock | None = None,
        actor_id: UUID | None = None,
    ):
        self.session = session
        self.store = store or SqlAlchemyStore(session)
        self.clock = clock or SystemClock()
        self.actor_id = actor_id
