import pytest

from app.requests.domain.errors import QuantityOutOfRange, ValidationFailed
from app.requests.domain.fulfillment import (
    amount_owed,
    apply_quantity_change,
    change_reason,
    fulfillment_state,
    implied_status,
)
from app.requests.domain.models import JigStatus
from factories import make_jig


def test_receive_updates_quantity_only():
    request = make_jig(quantity=100, received=0)

    updated = apply_quantity_change(request, 40)

    assert updated.received_quantity == 40
    assert updated.status == request.status
    assert updated.history == request.history
    assert request.received_quantity == 0


def test_receive_past_ordered_is_rejected():
    request = make_jig(quantity=100, received=40)

    with pytest.raises(QuantityOutOfRange):
        apply_quantity_change(request, 70)


def test_return_more_than_on_hand_is_rejected():
    request = make_jig(quantity=100, received=10)

    with pytest.raises(QuantityOutOfRange):
        apply_quantity_change(request, -11)

    assert apply_quantity_change(request, -10).received_quantity == 0


def test_zero_change_is_rejected():
    with pytest.raises(ValidationFailed):
        apply_quantity_change(make_jig(), 0)


def test_quantity_stays_in_range_over_a_sequence():
    request = make_jig(quantity=50, received=0)

    for delta in (20, -5, 40, 35, -50, 15, 60, -1, 100):
        try:
            request = apply_quantity_change(request, delta)
        except QuantityOutOfRange:
            pass
        assert 0 <= request.received_quantity <= request.quantity


def test_implied_status_follows_progress():
    assert implied_status(make_jig(quantity=100, received=0)) == JigStatus.IN_PROGRESS
    assert implied_status(make_jig(quantity=100, received=1)) == JigStatus.RECEIVING
    assert implied_status(make_jig(quantity=100, received=100)) == JigStatus.COMPLETED


def test_amount_while_receiving_uses_received_quantity():
    request = make_jig(status=JigStatus.RECEIVING, quantity=100, received=40, unit_price=30, core_cost=5000)

    assert amount_owed(request) == 40 * 30


def test_amount_when_completed_includes_core_cost():
    request = make_jig(status=JigStatus.COMPLETED, quantity=100, received=100, unit_price=30, core_cost=5000)

    assert amount_owed(request) == 100 * 30 + 5000


def test_amount_is_zero_outside_billable_statuses():
    for status in (JigStatus.REQUEST, JigStatus.HOLD, JigStatus.REJECTED):
        assert amount_owed(make_jig(status=status, received=20, unit_price=30, core_cost=5000)) == 0


def test_unset_prices_default_to_zero():
    request = make_jig(status=JigStatus.COMPLETED, quantity=10, received=10, unit_price=None, core_cost=None)

    assert amount_owed(request) == 0


def test_fulfillment_state():
    state = fulfillment_state(make_jig(status=JigStatus.RECEIVING, quantity=100, received=40, unit_price=30))

    assert state.received_quantity == 40
    assert state.remaining_quantity == 60
    assert state.amount == 1200


def test_change_reason_messages():
    request = make_jig(quantity=100, received=0)

    partial = apply_quantity_change(request, 40)
    assert change_reason(partial, 40) == "수량 40개 입고됨. (총 40/100)"

    full = apply_quantity_change(partial, 60)
    assert change_reason(full, 60) == "모든 품목 입고 완료. (총 100/100)"

    returned = apply_quantity_change(partial, -10)
    assert change_reason(returned, -10) == "수량 10개 반출됨. (총 30/100)"
