# test_sessions_api.py
from datetime import datetime, timedelta, timezone

import jwt

from cuehall.config import settings
from cuehall.models.core import TableSession


def jprint(step, r):
    """Helper to assert on failure with the response body."""
    assert 200 <= r.status_code < 300, f"{step} -> {r.status_code}: {r.text}"
    return r.json()


def backdate(db, session_id, minutes):
    """Pretend the session was opened `minutes` ago (plus a little slack)."""
    opened = datetime.now(timezone.utc) - timedelta(minutes=minutes, seconds=10)
    db.query(TableSession).filter(TableSession.id == session_id).update({TableSession.opened_at: opened})
    db.commit()


def _add_beer(client, admin_headers, headers, order_id):
    r = client.post("/products", headers=admin_headers, json={
        "sku": "BEER", "name": "Beer", "category": "DRINK", "price": 50.0, "tax_rate": 0.12,
    })
    beer_id = jprint("POST /products", r)["id"]
    return jprint("POST /orders/{id}/items", client.post(
        f"/orders/{order_id}/items", headers=headers, json={"product_id": beer_id}))


def test_healthz_and_request_id(client):
    r = client.get("/healthz", headers={"X-Request-ID": "abc-123"})
    assert r.status_code == 200
    assert r.json() == {"ok": True}
    assert r.headers["X-Request-ID"] == "abc-123"


def test_requires_auth(client, boot):
    r = client.post("/sessions", json={"pool_table_id": boot["pool_table_id"]})
    assert r.status_code == 401


def test_bad_login(client, boot):
    r = client.post("/auth/login", params={"mobile": "9999999999", "password": "wrong"})
    assert r.status_code == 401


def test_cashier_cannot_edit_tables(client, cashier_headers):
    r = client.post("/tables", headers=cashier_headers, json={"name": "Table 9", "hourly_rate": 80})
    assert r.status_code == 403


def test_table_crud(client, admin_headers):
    t = jprint("POST /tables", client.post("/tables", headers=admin_headers,
                                           json={"name": "Table 2", "hourly_rate": 150}))
    assert t["hourly_rate"] == 150.0

    dup = client.post("/tables", headers=admin_headers, json={"name": "Table 2", "hourly_rate": 1})
    assert dup.status_code == 409

    names = [row["name"] for row in jprint("GET /tables", client.get("/tables", headers=admin_headers))]
    assert names == ["Table 1", "Table 2"]

    jprint("DELETE /tables", client.delete(f"/tables/{t['id']}", headers=admin_headers))
    names = [row["name"] for row in client.get("/tables", headers=admin_headers).json()]
    assert names == ["Table 1"]


def test_open_table_twice_returns_same_session(client, boot, cashier_headers):
    body = {"pool_table_id": boot["pool_table_id"]}
    first = jprint("POST /sessions", client.post("/sessions", headers=cashier_headers, json=body))
    second = jprint("POST /sessions", client.post("/sessions", headers=cashier_headers, json=body))
    assert first["created"] is True
    assert second["created"] is False
    assert second["id"] == first["id"]

    tables = client.get("/tables", headers=cashier_headers).json()
    assert tables[0]["occupied"] is True


def test_fixed_session_requires_target(client, boot, cashier_headers):
    r = client.post("/sessions", headers=cashier_headers,
                    json={"pool_table_id": boot["pool_table_id"], "session_type": "FIXED"})
    assert r.status_code == 422


def test_money_game_requires_bet(client, boot, cashier_headers):
    r = client.post("/sessions", headers=cashier_headers,
                    json={"pool_table_id": boot["pool_table_id"], "is_money_game": True})
    assert r.status_code == 422


def test_unknown_session_is_404(client, cashier_headers):
    assert client.get("/sessions/missing/bill", headers=cashier_headers).status_code == 404


def test_live_bill_and_pay_flow(client, db, boot, admin_headers, cashier_headers):
    s = jprint("POST /sessions", client.post("/sessions", headers=cashier_headers,
                                             json={"pool_table_id": boot["pool_table_id"]}))
    bill = jprint("GET bill", client.get(f"/sessions/{s['id']}/bill", headers=cashier_headers))
    assert bill["table_fee"] == 0.0
    assert bill["elapsed_minutes"] == 0

    backdate(db, s["id"], 35)
    bill = jprint("GET bill", client.get(f"/sessions/{s['id']}/bill", headers=cashier_headers))
    assert bill["elapsed_minutes"] == 35
    assert bill["table_fee"] == 100.0

    detail = jprint("GET session", client.get(f"/sessions/{s['id']}", headers=cashier_headers))
    item = _add_beer(client, admin_headers, cashier_headers, detail["order_id"])
    assert item["totals"]["total"] == 56.0

    bill = jprint("GET bill", client.get(f"/sessions/{s['id']}/bill", headers=cashier_headers))
    assert bill["total"] == 156.0

    paid = jprint("POST pay", client.post(f"/sessions/{s['id']}/pay", headers=cashier_headers,
                                          json={"method": "CASH", "tendered_amount": 200}))
    assert paid["already_closed"] is False
    assert paid["table_fee"] == 100.0
    assert paid["total"] == 156.0
    assert paid["change_due"] == 44.0

    again = jprint("POST pay", client.post(f"/sessions/{s['id']}/pay", headers=cashier_headers,
                                           json={"method": "CASH", "tendered_amount": 200}))
    assert again["already_closed"] is True
    assert again["payment_id"] == paid["payment_id"]

    closed = jprint("GET session", client.get(f"/sessions/{s['id']}", headers=cashier_headers))
    assert closed["status"] == "CLOSED"
    assert closed["order_status"] == "PAID"


def test_pay_rejects_zero_tender(client, boot, cashier_headers):
    s = client.post("/sessions", headers=cashier_headers, json={"pool_table_id": boot["pool_table_id"]}).json()
    r = client.post(f"/sessions/{s['id']}/pay", headers=cashier_headers,
                    json={"method": "CASH", "tendered_amount": 0})
    assert r.status_code == 422


def test_pause_resume_endpoints(client, boot, cashier_headers):
    s = client.post("/sessions", headers=cashier_headers, json={"pool_table_id": boot["pool_table_id"]}).json()

    paused = jprint("pause", client.post(f"/sessions/{s['id']}/pause", headers=cashier_headers))
    assert paused["paused_at"] is not None
    assert client.post(f"/sessions/{s['id']}/pause", headers=cashier_headers).status_code == 409

    bill = jprint("GET bill", client.get(f"/sessions/{s['id']}/bill", headers=cashier_headers))
    assert bill["is_paused"] is True

    resumed = jprint("resume", client.post(f"/sessions/{s['id']}/resume", headers=cashier_headers))
    assert resumed["paused_at"] is None
    assert resumed["accumulated_paused_time"] >= 0
    assert client.post(f"/sessions/{s['id']}/resume", headers=cashier_headers).status_code == 409


def test_release_then_pay(client, db, boot, cashier_headers):
    s = client.post("/sessions", headers=cashier_headers, json={"pool_table_id": boot["pool_table_id"]}).json()
    backdate(db, s["id"], 45)

    released = jprint("release", client.post(f"/sessions/{s['id']}/release", headers=cashier_headers))
    assert released["pool_table_id"] is None
    assert released["location_name"] == "Table 1 (released)"
    assert released["bill"]["table_fee"] == 100.0

    assert client.post(f"/sessions/{s['id']}/release", headers=cashier_headers).status_code == 409
    assert client.post(f"/sessions/{s['id']}/pause", headers=cashier_headers).status_code == 409

    # table is free for the next group
    nxt = jprint("POST /sessions", client.post("/sessions", headers=cashier_headers,
                                               json={"pool_table_id": boot["pool_table_id"]}))
    assert nxt["created"] is True

    paid = jprint("pay", client.post(f"/sessions/{s['id']}/pay", headers=cashier_headers,
                                     json={"method": "GCASH", "tendered_amount": 100}))
    assert paid["table_fee"] == 100.0
    assert paid["total"] == 100.0


def test_walk_in_tab(client, boot, cashier_headers):
    s = jprint("walk-in", client.post("/sessions/walk-in", headers=cashier_headers,
                                      json={"customer_name": "Bob"}))
    assert s["location_name"] == "Walk-in"
    assert client.post(f"/sessions/{s['id']}/release", headers=cashier_headers).status_code == 409

    bill = jprint("GET bill", client.get(f"/sessions/{s['id']}/bill", headers=cashier_headers))
    assert bill["table_fee"] == 0.0


def test_token_from_another_issuer_is_rejected(client, boot):
    now = datetime.now(timezone.utc)
    token = jwt.encode({"sub": "someone", "iss": "not-cuehall", "exp": now + timedelta(minutes=5)},
                       settings.APP_SECRET, algorithm=settings.JWT_ALG)
    r = client.get("/tables", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 401


def test_prepaid_booking_needs_money_taken(client, boot, cashier_headers):
    body = {"pool_table_id": boot["pool_table_id"], "session_type": "FIXED",
            "target_duration_minutes": 180, "is_prepaid": True}
    assert client.post("/sessions", headers=cashier_headers, json=body).status_code == 422

    body["prepaid_amount"] = 1
    assert client.post("/sessions", headers=cashier_headers, json=body).status_code == 400

    body["prepaid_amount"] = 300
    s = jprint("POST /sessions", client.post("/sessions", headers=cashier_headers, json=body))
    paid = jprint("pay", client.post(f"/sessions/{s['id']}/pay", headers=cashier_headers,
                                     json={"method": "CASH", "tendered_amount": 1}))
    # the three hours were paid at booking
    assert paid["table_fee"] == 0.0
    assert paid["total"] == 0.0
