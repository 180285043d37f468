"""
InventoryLedger -- append-only writer for inventory movements.

Responsibility:
    Persists one InventoryMovement per MovementDraft, stamping it with the
    next ledger sequence number and the injected clock's time.

Architecture position:
    Kernel > Services -- imperative shell.
    Called by DeductionEngine.  Read access lives in
    selectors/ledger_selector.py.

Invariants enforced:
    LEDGER_APPEND_ONLY -- this writer only ever INSERTs.  Updates and
        deletes are blocked by db/immutability.py and, on PostgreSQL, by
        the trg_inventory_movement_immutability_* triggers.
    - seq is allocated from SequenceService, so creation order is total.

Failure modes:
    - IntegrityError on an unknown product/variant/order id (FK).
"""

from sqlalchemy.orm import Session

from fulfillment_kernel.domain.clock import Clock, SystemClock
from fulfillment_kernel.domain.dtos import MovementDraft, MovementRecord
from fulfillment_kernel.logging_config import get_logger
from fulfillment_kernel.models.inventory import InventoryMovement
from fulfillment_kernel.services.base import BaseService
from fulfillment_kernel.services.sequence_service import SequenceService

logger = get_logger("services.inventory_ledger")


class InventoryLedger(BaseService[InventoryMovement]):
    """Writes ledger rows.  Never commits."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        sequence_service: SequenceService | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._sequences = sequence_service or SequenceService(session)

    def append(self, draft: MovementDraft) -> MovementRecord:
        """Insert one movement and return its persisted record."""
        seq = self._sequences.next_value(SequenceService.INVENTORY_MOVEMENT)

        movement = InventoryMovement(
            seq=seq,
            product_id=draft.product_id,
            variant_id=draft.variant_id,
            order_id=draft.order_id,
            delta=draft.delta,
            reason=draft.reason,
            applies_to_stock=draft.applies_to_stock,
            created_at=self._clock.now(),
        )
        self.session.add(movement)
        self.session.flush()

        logger.info(
            "ledger_movement_appended",
            extra={
                "seq": seq,
                "product_id": str(draft.product_id),
                "variant_id": str(draft.variant_id) if draft.variant_id else None,
                "delta": draft.delta,
                "applies_to_stock": draft.applies_to_stock,
            },
        )
        return MovementRecord.from_model(movement)
