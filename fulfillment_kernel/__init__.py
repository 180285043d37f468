"""
Fulfillment Kernel

An order-fulfillment consistency engine with:
- Explicit order state machine
- Exactly-once stock deduction on payment
- Atomic decrement + ledger write per order
- Append-only inventory ledger with reconciliation
"""

__version__ = "0.1.0"
