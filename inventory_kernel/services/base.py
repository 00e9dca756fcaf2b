"""
BaseService -- abstract base for kernel services.

Responsibility:
    Common constructor and session contract.  Services persist through
    ``session.flush()`` and never call ``session.commit()`` or
    ``session.rollback()``; the caller (InventoryService, a test harness)
    owns the transaction so multi-step operations stay atomic.

Architecture position:
    Kernel > Services.  Read-only queries belong in
    ``inventory_kernel/selectors/``.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from inventory_kernel.db.base import Base
from inventory_kernel.domain.clock import Clock, SystemClock

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for write services.

    Guarantees:
        - Flush-only: no commit, no rollback.
        - Timestamps come from the injected clock.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()
