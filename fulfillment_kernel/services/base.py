"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every service in the kernel layer.  All concrete services inherit
    from BaseService, receiving a SQLAlchemy ``Session`` that they use
    via ``session.flush()`` -- never ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    ATOMIC_DEDUCTION -- services flush within the caller's transaction and
        never commit or roll back the caller's transaction.  A service may
        open a SAVEPOINT of its own and roll *that* back on failure.  The
        caller (PaymentConfirmationService, a web handler, or the test
        harness) owns commit/rollback.

Failure modes:
    - If a subclass violates the flush-only contract by calling
      ``session.commit()``, a status write and its deduction could be
      persisted separately.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from fulfillment_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for all kernel services.

    Contract:
        Accepts a SQLAlchemy ``Session`` from the caller and uses
        ``session.flush()`` to persist changes within the active
        transaction.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide audit read paths -- those belong
          in ``fulfillment_kernel/selectors/``.
    """

    def __init__(self, session: Session):
        self.session = session
