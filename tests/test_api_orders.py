"""
Tests: /api/v1/orders HTTP surface.

Covers:
    - auth required, error envelope for validation / not found / forbidden
    - create + get + patch round through the blueprint
    - child endpoints return the rebuilt order alongside the child
    - list pagination and pipeline summary scoping
"""

from datetime import timedelta

from gigorders.utils.dates import utcnow

BASE = "/api/v1/orders"


def _post_order(client, headers, **kw):
    payload = {"client_name": "Acme Ltd", "value_amount": "1200"}
    payload.update(kw)
    res = client.post(BASE, json=payload, headers=headers)
    assert res.status_code == 201, res.get_json()
    return res.get_json()["order"]


class TestAuthAndErrors:
    def test_requires_token(self, client):
        res = client.get(BASE)
        assert res.status_code == 401

    def test_validation_envelope(self, client, freelancer, auth_headers):
        res = client.post(BASE, json={"pipeline_stage": "launch", "client_name": "A"},
                          headers=auth_headers(freelancer))
        assert res.status_code == 422
        body = res.get_json()
        assert body["success"] is False
        assert body["error"]["code"] == "VALIDATION_ERROR"
        assert body["error"]["details"]["pipeline_stage"] == "launch"

    def test_not_found(self, client, freelancer, auth_headers):
        res = client.get(f"{BASE}/4040", headers=auth_headers(freelancer))
        assert res.status_code == 404
        assert res.get_json()["error"]["code"] == "NOT_FOUND"

    def test_forbidden_for_other_freelancer(self, client, freelancer, other_freelancer, auth_headers):
        order = _post_order(client, auth_headers(freelancer))
        res = client.patch(f"{BASE}/{order['id']}", json={"title": "x"},
                           headers=auth_headers(other_freelancer))
        assert res.status_code == 403
        assert res.get_json()["error"]["code"] == "FORBIDDEN"

    def test_admin_can_read_any_order(self, client, freelancer, admin, auth_headers):
        order = _post_order(client, auth_headers(freelancer))
        res = client.get(f"{BASE}/{order['id']}", headers=auth_headers(admin))
        assert res.status_code == 200

    def test_body_must_be_object(self, client, freelancer, auth_headers):
        res = client.post(BASE, json=["x"], headers=auth_headers(freelancer))
        assert res.status_code == 422

    def test_oversized_amount_is_rejected(self, client, freelancer, auth_headers):
        res = client.post(BASE, json={"client_name": "Acme", "value_amount": "1e30"},
                          headers=auth_headers(freelancer))
        assert res.status_code == 422
        assert res.get_json()["error"]["code"] == "VALIDATION_ERROR"
        assert res.get_json()["error"]["details"]["value_amount"] == "1e30"


class TestOrders:
    def test_create_and_get(self, client, freelancer, gig, auth_headers):
        headers = auth_headers(freelancer)
        order = _post_order(client, headers, pipeline_stage="delivery", gig_id=gig.id,
                            tags="brand, web")
        assert order["freelancer_id"] == freelancer.id
        assert order["workflow_status"] == "ready_for_payout"
        assert order["pipeline_stage"] == "delivery"
        assert order["value_amount"] == 1200.0
        assert order["tags"] == ["brand", "web"]
        assert order["gig"] == {"id": gig.id, "title": "Landing page design"}
        assert order["freelancer"]["full_name"] == "Ada Freelancer"
        assert order["metrics"]["next_action"] == "Confirm final acceptance."

        res = client.get(f"{BASE}/{order['id']}", headers=headers)
        body = res.get_json()
        assert body["success"] is True
        assert body["order"]["order_number"] == order["order_number"]

    def test_timestamps_are_iso(self, client, freelancer, auth_headers):
        order = _post_order(client, auth_headers(freelancer), due_at="2030-01-15T09:30:00Z")
        assert order["due_at"].startswith("2030-01-15T09:30:00")
        assert order["created_at"] is not None

    def test_patch(self, client, freelancer, auth_headers):
        headers = auth_headers(freelancer)
        order = _post_order(client, headers)
        res = client.patch(f"{BASE}/{order['id']}", json={
            "pipeline_stage": "production",
            "kickoff_at": (utcnow() + timedelta(days=1)).isoformat(),
        }, headers=headers)
        assert res.status_code == 200
        updated = res.get_json()["order"]
        assert updated["workflow_status"] == "in_progress"
        assert updated["kickoff_status"] == "scheduled"
        assert updated["metrics"]["kickoff_scheduled"] == 1

    def test_list_is_scoped_and_paginated(self, client, freelancer, other_freelancer, admin, auth_headers):
        for _ in range(3):
            _post_order(client, auth_headers(freelancer))
        _post_order(client, auth_headers(other_freelancer))

        res = client.get(f"{BASE}?limit=2", headers=auth_headers(freelancer))
        body = res.get_json()
        assert len(body["orders"]) == 2
        assert body["pagination"]["total"] == 3
        assert body["pagination"]["has_next"] is True

        res = client.get(f"{BASE}?limit=50", headers=auth_headers(admin))
        assert res.get_json()["pagination"]["total"] == 4


class TestChildEndpoints:
    def test_requirement_flow(self, client, freelancer, auth_headers):
        headers = auth_headers(freelancer)
        order = _post_order(client, headers)
        res = client.post(f"{BASE}/{order['id']}/requirements",
                          json={"title": "Brand kit", "questions": [{"q": "Fonts?"}]}, headers=headers)
        assert res.status_code == 201
        body = res.get_json()
        requirement = body["requirement"]
        assert requirement["status"] == "pending_client"
        assert requirement["questions"] == [{"q": "Fonts?"}]
        assert body["order"]["metrics"]["pending_requirements"] == 1

        res = client.patch(f"{BASE}/requirements/{requirement['id']}",
                           json={"status": "waived"}, headers=headers)
        assert res.get_json()["requirement"]["status"] == "approved"

    def test_revision_flow(self, client, freelancer, auth_headers):
        headers = auth_headers(freelancer)
        order = _post_order(client, headers)
        client.post(f"{BASE}/{order['id']}/revisions", json={}, headers=headers)
        res = client.post(f"{BASE}/{order['id']}/revisions", json={"severity": "high"}, headers=headers)
        revision = res.get_json()["revision"]
        assert revision["round_number"] == 2

        res = client.patch(f"{BASE}/revisions/{revision['id']}", json={"status": "rejected"}, headers=headers)
        assert res.get_json()["revision"]["status"] == "declined"

    def test_escrow_flow(self, client, freelancer, auth_headers):
        headers = auth_headers(freelancer)
        order = _post_order(client, headers)
        res = client.post(f"{BASE}/{order['id']}/escrow-checkpoints",
                          json={"label": "Deposit", "amount": "300"}, headers=headers)
        assert res.status_code == 201
        checkpoint = res.get_json()["checkpoint"]
        assert checkpoint["status"] == "funded"

        res = client.patch(f"{BASE}/escrow-checkpoints/{checkpoint['id']}",
                           json={"escrow_status": "released"}, headers=headers)
        body = res.get_json()
        assert body["checkpoint"]["status"] == "released"
        assert body["order"]["escrow"]["released"] == 300.0

    def test_child_of_foreign_order(self, client, freelancer, other_freelancer, auth_headers):
        order = _post_order(client, auth_headers(freelancer))
        res = client.post(f"{BASE}/{order['id']}/revisions", json={},
                          headers=auth_headers(other_freelancer))
        assert res.status_code == 403


class TestPipelineEndpoint:
    def test_summary(self, client, freelancer, other_freelancer, auth_headers):
        headers = auth_headers(freelancer)
        _post_order(client, headers, workflow_status="completed", value_amount="100")
        _post_order(client, headers, workflow_status="in_progress", value_amount="50.50")
        _post_order(client, auth_headers(other_freelancer), value_amount="999")

        res = client.get(f"{BASE}/pipeline?lookback_days=9999", headers=headers)
        assert res.status_code == 200
        body = res.get_json()
        assert body["meta"]["lookback_days"] == 365
        assert body["meta"]["filters"]["owner_id"] == freelancer.id
        assert body["summary"]["totals"]["orders"] == 2
        assert body["summary"]["totals"]["total_value"] == 150.5
        assert body["summary"]["pipeline"]["completed"] == 1
        assert len(body["orders"]) == 2
