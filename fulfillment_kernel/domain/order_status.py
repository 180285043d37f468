"""
Order status state machine.

Responsibility:
    Declares the closed set of order statuses, the transition table, and the
    one named check that decides whether a transition carries the stock
    deduction side effect.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    TRANSITION_LEGALITY -- ORDER_TRANSITIONS is the only source of legal
        status moves.  Terminal states have no outgoing edges.
    SINGLE_DEDUCTION -- is_paid_transition() is True only for a move into
        PAGADO from a status other than PAGADO.

State machine:
    NUEVO     -> PAGADO | CANCELADO
    PAGADO    -> ENVIADO | CANCELADO
    ENVIADO   -> ENTREGADO
    CANCELADO: terminal
    ENTREGADO: terminal
"""

from __future__ import annotations

from enum import Enum

from fulfillment_kernel.exceptions import InvalidTransitionError


class OrderStatus(str, Enum):
    """Lifecycle status of an order."""

    NUEVO = "nuevo"          # Created at checkout, awaiting payment
    PAGADO = "pagado"        # Payment confirmed, stock deducted
    ENVIADO = "enviado"      # Handed to the carrier
    ENTREGADO = "entregado"  # Delivered
    CANCELADO = "cancelado"  # Cancelled


ORDER_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.NUEVO: frozenset({OrderStatus.PAGADO, OrderStatus.CANCELADO}),
    OrderStatus.PAGADO: frozenset({OrderStatus.ENVIADO, OrderStatus.CANCELADO}),
    OrderStatus.ENVIADO: frozenset({OrderStatus.ENTREGADO}),
    # Terminal states
    OrderStatus.CANCELADO: frozenset(),
    OrderStatus.ENTREGADO: frozenset(),
}

TERMINAL_ORDER_STATUSES: frozenset[OrderStatus] = frozenset(
    status for status, targets in ORDER_TRANSITIONS.items() if not targets
)

ALLOWED_STATUS_VALUES: tuple[str, ...] = tuple(s.value for s in OrderStatus)


def parse_status(value: OrderStatus | str) -> OrderStatus | None:
    """Normalize a status or raw string; None for values outside the closed set."""
    if isinstance(value, OrderStatus):
        return value
    try:
        return OrderStatus(value)
    except ValueError:
        return None


def is_paid_transition(old: OrderStatus | str, new: OrderStatus | str) -> bool:
    """True when moving from ``old`` to ``new`` must trigger stock deduction."""
    return parse_status(old) != OrderStatus.PAGADO and parse_status(new) == OrderStatus.PAGADO


def is_valid_transition(old: OrderStatus, new: OrderStatus) -> bool:
    """True when ``new`` is reachable from ``old`` in one step."""
    return new in ORDER_TRANSITIONS.get(old, frozenset())


def validate_transition(order_id, old: OrderStatus, new: OrderStatus) -> None:
    """Raise InvalidTransitionError unless old -> new is in the table."""
    if not is_valid_transition(old, new):
        raise InvalidTransitionError(str(order_id), old.value, new.value)
