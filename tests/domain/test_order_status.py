"""
Tests for the order status state machine (``fulfillment_kernel.domain.order_status``).

Invariants tested:
- TRANSITION_LEGALITY: ORDER_TRANSITIONS defines the only valid status
  transitions.  Terminal states have no outgoing edges.
- SINGLE_DEDUCTION: is_paid_transition() is True only for a move into
  pagado from a status other than pagado.
"""

import itertools

import pytest

from fulfillment_kernel.domain.order_status import (
    ALLOWED_STATUS_VALUES,
    ORDER_TRANSITIONS,
    TERMINAL_ORDER_STATUSES,
    OrderStatus,
    is_paid_transition,
    is_valid_transition,
    parse_status,
    validate_transition,
)
from fulfillment_kernel.exceptions import InvalidTransitionError


class TestOrderStatus:

    def test_closed_set_of_statuses(self):
        assert {s.value for s in OrderStatus} == {
            "nuevo",
            "pagado",
            "enviado",
            "entregado",
            "cancelado",
        }

    def test_str_enum_compares_to_raw_value(self):
        assert OrderStatus.PAGADO == "pagado"

    def test_allowed_values_match_enum(self):
        assert set(ALLOWED_STATUS_VALUES) == {s.value for s in OrderStatus}


class TestTransitionTable:

    EXPECTED_EDGES = {
        ("nuevo", "pagado"),
        ("nuevo", "cancelado"),
        ("pagado", "enviado"),
        ("pagado", "cancelado"),
        ("enviado", "entregado"),
    }

    def test_every_status_has_an_entry(self):
        assert set(ORDER_TRANSITIONS) == set(OrderStatus)

    def test_edges_are_exactly_the_lifecycle(self):
        edges = {
            (src.value, dst.value)
            for src, targets in ORDER_TRANSITIONS.items()
            for dst in targets
        }
        assert edges == self.EXPECTED_EDGES

    def test_terminal_statuses(self):
        assert TERMINAL_ORDER_STATUSES == {OrderStatus.CANCELADO, OrderStatus.ENTREGADO}

    @pytest.mark.parametrize("old,new", list(itertools.product(OrderStatus, OrderStatus)))
    def test_is_valid_transition_matches_table(self, old, new):
        assert is_valid_transition(old, new) == ((old.value, new.value) in self.EXPECTED_EDGES)

    def test_validate_transition_raises_with_context(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            validate_transition("order-1", OrderStatus.ENTREGADO, OrderStatus.NUEVO)
        err = exc_info.value
        assert err.code == "INVALID_TRANSITION"
        assert err.order_id == "order-1"
        assert err.from_status == "entregado"
        assert err.to_status == "nuevo"

    def test_validate_transition_accepts_legal_move(self):
        validate_transition("order-1", OrderStatus.NUEVO, OrderStatus.PAGADO)


class TestIsPaidTransition:

    def test_nuevo_to_pagado_qualifies(self):
        assert is_paid_transition(OrderStatus.NUEVO, OrderStatus.PAGADO)

    def test_repeat_pagado_does_not_qualify(self):
        assert not is_paid_transition(OrderStatus.PAGADO, OrderStatus.PAGADO)

    def test_accepts_raw_strings(self):
        assert is_paid_transition("nuevo", "pagado")
        assert not is_paid_transition("pagado", "pagado")

    @pytest.mark.parametrize("new", [s for s in OrderStatus if s != OrderStatus.PAGADO])
    def test_only_pagado_target_qualifies(self, new):
        for old in OrderStatus:
            assert not is_paid_transition(old, new)


class TestParseStatus:

    def test_parses_known_value(self):
        assert parse_status("enviado") is OrderStatus.ENVIADO

    def test_passes_enum_through(self):
        assert parse_status(OrderStatus.NUEVO) is OrderStatus.NUEVO

    @pytest.mark.parametrize("raw", ["PAGADO", "paid", "", "pagado "])
    def test_unknown_value_is_none(self, raw):
        assert parse_status(raw) is None
