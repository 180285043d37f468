"""Read-only query selectors."""

from fulfillment_kernel.selectors.ledger_selector import LedgerSelector, MovementHistory

__all__ = ["LedgerSelector", "MovementHistory"]
