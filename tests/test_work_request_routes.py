from datetime import timedelta

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.requests.application.locks import RequestLocks
from app.requests.domain.models import JigStatus, ProductionStatus, RequestKind
from factories import ADMIN, MANAGER, MEMBER, make_jig, make_production, make_sample
from routes.auth_routes import auth_router, create_access_token, decode_actor, get_current_actor
from routes.work_requests_routes import (
    get_request_locks,
    get_work_request_repository,
    work_requests_router,
)


@pytest.fixture
def app(repo):
    app = FastAPI()
    app.include_router(auth_router)
    app.include_router(work_requests_router)
    app.dependency_overrides[get_work_request_repository] = lambda: repo
    app.dependency_overrides[get_request_locks] = RequestLocks
    return app


@pytest.fixture
def client(app):
    return TestClient(app)


def act_as(app, actor):
    app.dependency_overrides[get_current_actor] = lambda: actor


def test_create_and_fetch_jig_request(app, client, repo):
    act_as(app, MANAGER)

    response = client.post(
        "/api/requests/jig",
        json={"requester": "정원익", "quantity": 100, "unit_price": 30, "details": {"item_name": "테이프지그"}},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["id"] == "T1"
    assert body["status"] == "request"
    assert body["status_label"] == "요청"
    assert body["fulfillment"] == {"received_quantity": 0, "remaining_quantity": 100, "amount": 0}
    assert [entry["reason"] for entry in body["history"]] == ["생성됨"]

    fetched = client.get("/api/requests/jig/T1")
    assert fetched.status_code == 200
    assert fetched.json()["details"] == {"item_name": "테이프지그"}


def test_unknown_kind_is_rejected(app, client):
    act_as(app, ADMIN)

    assert client.get("/api/requests/tooling").status_code == 422


def test_missing_request_returns_404(app, client):
    act_as(app, ADMIN)

    response = client.get("/api/requests/sample/S-20250801-999")

    assert response.status_code == 404
    assert response.json()["detail"] == "요청을 찾을 수 없습니다"


def test_status_update_maps_domain_errors(app, client, repo):
    repo.put(make_production())

    act_as(app, MEMBER)
    denied = client.post("/api/requests/production/P-250801-001/status", json={"status": "in_progress"})
    assert denied.status_code == 403

    act_as(app, ADMIN)
    invalid = client.post("/api/requests/production/P-250801-001/status", json={"status": "completed"})
    assert invalid.status_code == 409

    missing_reason = client.post("/api/requests/production/P-250801-001/status", json={"status": "hold"})
    assert missing_reason.status_code == 400

    accepted = client.post("/api/requests/production/P-250801-001/status", json={"status": "in_progress"})
    assert accepted.status_code == 200
    assert accepted.json()["status"] == "in_progress"
    assert accepted.json()["history"][-1]["reason"] == "접수됨"


def test_receipts_drive_fulfillment(app, client, repo):
    repo.put(make_jig(quantity=100, unit_price=30))
    act_as(app, MANAGER)

    response = client.post("/api/requests/jig/T1/receipts", json={"quantity_change": 40})

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == JigStatus.RECEIVING.value
    assert body["status_label"] == "입고중"
    assert body["fulfillment"] == {"received_quantity": 40, "remaining_quantity": 60, "amount": 1200}

    overshoot = client.post("/api/requests/jig/T1/receipts", json={"quantity_change": 70})
    assert overshoot.status_code == 400
    assert repo.requests[(RequestKind.JIG, "T1")].received_quantity == 40


def test_conflict_is_reported_as_409(app, client, repo):
    repo.put(make_jig())
    repo.conflict_on_save = True
    act_as(app, MANAGER)

    response = client.post("/api/requests/jig/T1/receipts", json={"quantity_change": 10})

    assert response.status_code == 409
    assert repo.rollbacks == 1


def test_comments_and_unread_flags(app, client, repo):
    repo.put(make_sample())

    act_as(app, MANAGER)
    created = client.post("/api/requests/sample/S-20250801-001/comments", json={"text": "색상 확인 부탁드립니다"})
    assert created.status_code == 200
    assert created.json()["user"] == MANAGER.name

    act_as(app, MEMBER)
    assert client.post("/api/requests/sample/S-20250801-001/comments", json={"text": "확인"}).status_code == 403
    assert client.get("/api/requests/sample/S-20250801-001").json()["unread_comments"] == 1

    assert client.post("/api/requests/sample/S-20250801-001/comments/read").status_code == 200
    body = client.get("/api/requests/sample/S-20250801-001").json()
    assert body["unread_comments"] == 0
    assert body["comments"][0]["read_by"] == [MEMBER.id]


def test_work_data_update(app, client, repo):
    repo.put(make_sample())
    act_as(app, MANAGER)

    response = client.put("/api/requests/sample/S-20250801-001/work-data", json={"work_data": {"coating": "UV"}})

    assert response.status_code == 200
    assert response.json()["work_data"] == {"coating": "UV"}
    assert len(response.json()["history"]) == 1


def test_list_filters_by_status(app, client, repo):
    repo.put(make_production(request_id="P-250801-001"))
    repo.put(make_sample())
    act_as(app, MEMBER)

    response = client.get("/api/requests/production", params={"status": "requested"})

    assert response.status_code == 200
    assert [item["id"] for item in response.json()] == ["P-250801-001"]
    assert client.get("/api/requests/production", params={"status": "received"}).status_code == 400


def test_delete_requires_admin(app, client, repo):
    repo.put(make_jig())

    act_as(app, MANAGER)
    assert client.delete("/api/requests/jig/T1").status_code == 403

    act_as(app, ADMIN)
    assert client.delete("/api/requests/jig/T1").status_code == 200
    assert client.get("/api/requests/jig/T1").status_code == 404


def test_bearer_token_resolves_actor(client):
    token = create_access_token(MANAGER)

    response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 200
    assert response.json() == {"id": MANAGER.id, "name": MANAGER.name, "role": "manager"}


def test_missing_or_expired_token_is_unauthorized(client):
    assert client.get("/api/auth/me").status_code == 401

    expired = create_access_token(ADMIN, expires_delta=timedelta(minutes=-5))
    response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {expired}"})
    assert response.status_code == 401


def test_decode_actor_round_trip():
    assert decode_actor(create_access_token(ADMIN)) == ADMIN


def test_edit_request_keeps_status(app, client, repo):
    repo.put(make_jig(status=JigStatus.RECEIVING, quantity=100, received=40))
    act_as(app, MANAGER)

    response = client.put("/api/requests/jig/T1", json={"quantity": 80, "details": {"item_name": "테이프지그 v2"}})

    assert response.status_code == 200
    body = response.json()
    assert body["quantity"] == 80
    assert body["status"] == "receiving"
    assert body["history"][-1]["reason"] == "사용자에 의해 수정됨"
    assert body["fulfillment"]["remaining_quantity"] == 40

    below_received = client.put("/api/requests/jig/T1", json={"quantity": 10})
    assert below_received.status_code == 400

    act_as(app, MEMBER)
    assert client.put("/api/requests/jig/T1", json={"quantity": 90}).status_code == 403


def test_closed_production_request_cannot_be_edited(app, client, repo):
    repo.put(make_production(status=ProductionStatus.REJECTED))
    act_as(app, ADMIN)

    response = client.put("/api/requests/production/P-250801-001", json={"quantity": 10})

    assert response.status_code == 409


def test_history_can_be_filtered(app, client, repo):
    repo.put(make_jig(status=JigStatus.IN_PROGRESS))
    act_as(app, MEMBER)

    everything = client.get("/api/requests/jig/T1/history")
    by_admin = client.get("/api/requests/jig/T1/history", params={"user": "이현석"})
    created = client.get("/api/requests/jig/T1/history", params={"status": "request"})

    assert [entry["status"] for entry in everything.json()] == ["request", "in_progress"]
    assert [entry["reason"] for entry in by_admin.json()] == ["승인됨"]
    assert [entry["reason"] for entry in created.json()] == ["생성됨"]
    assert client.get("/api/requests/jig/T1/history", params={"status": "on_hold"}).status_code == 400


def test_detail_lists_statuses_the_caller_may_choose(app, client, repo):
    repo.put(make_jig(status=JigStatus.REQUEST))

    act_as(app, MANAGER)
    assert client.get("/api/requests/jig/T1").json()["allowed_statuses"] == []

    act_as(app, ADMIN)
    assert sorted(client.get("/api/requests/jig/T1").json()["allowed_statuses"]) == [
        "hold",
        "in_progress",
        "rejected",
    ]
