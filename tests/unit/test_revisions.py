import pytest

from app.requests.domain.errors import InvalidTransition, QuantityOutOfRange, ValidationFailed
from app.requests.domain.models import (
    JigStatus,
    ProductionRequestType,
    ProductionStatus,
    SampleStatus,
)
from app.requests.domain.revisions import revise_request
from factories import NOW, make_jig, make_production, make_sample


def test_jig_edit_keeps_status_and_records_entry():
    request = make_jig(status=JigStatus.RECEIVING, quantity=100, received=40)

    updated, entry = revise_request(
        request, "정원익", NOW, quantity=120, details={"item_name": "테이프지그 v2"}, unit_price=35
    )

    assert updated.quantity == 120
    assert updated.unit_price == 35
    assert updated.details == {"item_name": "테이프지그 v2"}
    assert updated.received_quantity == 40
    assert updated.status == JigStatus.RECEIVING
    assert entry.status == "receiving"
    assert entry.reason == "사용자에 의해 수정됨"
    assert updated.history == request.history + (entry,)


def test_jig_quantity_cannot_drop_below_received():
    request = make_jig(status=JigStatus.RECEIVING, quantity=100, received=40)

    with pytest.raises(QuantityOutOfRange):
        revise_request(request, "정원익", NOW, quantity=39)

    updated, _ = revise_request(request, "정원익", NOW, quantity=40)
    assert updated.quantity == 40


def test_production_edit_uses_request_reason():
    request = make_production(status=ProductionStatus.IN_PROGRESS)

    updated, entry = revise_request(
        request, "이현석", NOW, requester=" 권용찬 ", request_type=ProductionRequestType.LOGISTICS_TRANSFER
    )

    assert updated.requester == "권용찬"
    assert updated.request_type == ProductionRequestType.LOGISTICS_TRANSFER
    assert entry.reason == "요청 내용 수정됨"
    assert updated.status == ProductionStatus.IN_PROGRESS


@pytest.mark.parametrize("status", [ProductionStatus.COMPLETED, ProductionStatus.REJECTED])
def test_closed_production_request_is_not_editable(status):
    with pytest.raises(InvalidTransition):
        revise_request(make_production(status=status), "이현석", NOW, quantity=10)


def test_completed_sample_can_still_be_edited():
    updated, entry = revise_request(make_sample(status=SampleStatus.COMPLETED), "이현석", NOW, quantity=25)

    assert updated.quantity == 25
    assert entry.status == "completed"


def test_edit_validation():
    request = make_sample()

    with pytest.raises(ValidationFailed):
        revise_request(request, "이현석", NOW)
    with pytest.raises(ValidationFailed):
        revise_request(request, "이현석", NOW, requester="   ")
    with pytest.raises(ValidationFailed):
        revise_request(request, "이현석", NOW, quantity=-1)


def test_fields_of_other_kinds_are_ignored():
    request = make_sample()

    with pytest.raises(ValidationFailed):
        revise_request(request, "이현석", NOW, unit_price=10, request_type=ProductionRequestType.URGENT)
