"""End-to-end API tests over HTTP."""

from conftest import PIN, PASSWORD, api_signup

API = "/api/v1"
NIN = "12345678901"


def _register(client, headers, imei="123456789012345", **extra):
    body = {"imei": imei, "brand": "Apple", "model": "iPhone 14"}
    body.update(extra)
    return client.post(f"{API}/devices", json=body, headers=headers)


def test_health(client):
    assert client.get(f"{API}/health").json() == {"status": "ok"}
    assert client.get(f"{API}/system/ping").json() == {"status": "ok"}


def test_signup_login_profile(client):
    headers = api_signup(client, "alice@test.com", phone="+2348001234567")

    r = client.get(f"{API}/users/me", headers=headers)
    assert r.status_code == 200
    assert r.json()["points_balance"] == 500
    assert r.json()["phone"] == "+2348001234567"

    r = client.post(f"{API}/auth/login", json={"email": "ALICE@test.com", "password": PASSWORD})
    assert r.status_code == 200
    assert r.json()["access_token"]

    r = client.post(f"{API}/auth/login", json={"email": "alice@test.com", "password": "wrong-pass"})
    assert r.status_code == 401
    assert r.json()["detail"]["error"] == "authentication_failed"


def test_duplicate_signup(client):
    api_signup(client, "alice@test.com")
    r = client.post(f"{API}/auth/signup", json={
        "email": "alice@test.com", "password": PASSWORD, "full_name": "Alice", "pin": PIN,
    })
    assert r.status_code == 409
    assert r.json()["detail"]["error"] == "account_exists"


def test_requires_token(client):
    r = client.get(f"{API}/devices")
    assert r.status_code == 401
    assert r.json()["detail"]["error"] == "authentication_failed"
    r = client.get(f"{API}/devices", headers={"Authorization": "Bearer junk"})
    assert r.status_code == 401
    assert r.json()["detail"]["error"] == "authentication_failed"


def test_notification_preferences(client):
    headers = api_signup(client, "alice@test.com")

    r = client.get(f"{API}/users/me/notifications", headers=headers)
    assert r.status_code == 200
    assert r.json()["notify_push"] is True
    assert r.json()["notify_sms"] is False
    assert r.json()["alert_promotional"] is False

    r = client.patch(f"{API}/users/me/notifications", headers=headers, json={
        "notify_sms": True, "alert_payment": False,
    })
    assert r.status_code == 200
    assert r.json()["notify_sms"] is True
    assert r.json()["alert_payment"] is False
    assert r.json()["notify_email"] is True

    r = client.get(f"{API}/users/me/notifications", headers=headers)
    assert r.json()["notify_sms"] is True


def test_register_errors_are_structured(client):
    headers = api_signup(client, "alice@test.com")

    r = _register(client, headers, imei="12345678901234")
    assert r.status_code == 422
    assert r.json()["detail"] == {
        "error": "invalid_imei",
        "message": "IMEI must be exactly 15 digits",
        "field": "imei",
    }

    r = _register(client, headers, imei="123456789010000")
    assert r.status_code == 403
    assert r.json()["detail"]["error"] == "blacklisted_device"

    assert _register(client, headers).status_code == 201
    r = _register(client, headers)
    assert r.status_code == 409
    assert r.json()["detail"]["error"] == "duplicate_imei"


def test_bulk_registration(client):
    headers = api_signup(client, "alice@test.com")
    r = client.post(f"{API}/devices/bulk", headers=headers, json={"devices": [
        {"imei": "111111111111111", "brand": "Tecno", "model": "Spark 10"},
        {"imei": "111111111111111", "brand": "Tecno", "model": "Spark 10"},
    ]})
    assert r.status_code == 200
    data = r.json()
    assert data["registered"] == 1
    assert data["failed"] == 1
    assert data["points_used"] == 100
    assert data["results"][1]["error"] == "duplicate_imei"


def test_full_transfer_flow(client):
    seller = api_signup(client, "seller@test.com")
    buyer = api_signup(client, "buyer@test.com", phone="+2348005551234")

    r = _register(client, seller, has_receipt=True)
    assert r.status_code == 201
    device_id = r.json()["device_id"]
    assert r.json()["verification_status"] == "verified"

    r = client.post(f"{API}/transfers", headers=seller, json={
        "device_id": device_id,
        "recipient_contact": "+2348005551234",
        "recipient_name": "Buyer Person",
        "require_id": True,
        "recipient_nin": NIN,
        "reason": "Sold",
        "pin": PIN,
    })
    assert r.status_code == 201, r.text
    transfer_id = r.json()["transfer_id"]
    assert r.json()["state"] == "awaiting_recipient"
    assert r.json()["fee"] == 100

    r = client.get(f"{API}/transfers", params={"direction": "incoming"}, headers=buyer)
    assert [t["id"] for t in r.json()] == [transfer_id]

    r = client.post(f"{API}/transfers/{transfer_id}/resolve", headers=buyer, json={
        "action": "accept", "pin": PIN, "nin": NIN,
    })
    assert r.status_code == 200, r.text
    assert r.json() == {
        "transfer_id": transfer_id,
        "state": "accepted",
        "device_id": device_id,
        "device_status": "transferred",
    }

    # Second accept is a no-op
    r = client.post(f"{API}/transfers/{transfer_id}/resolve", headers=buyer, json={
        "action": "accept", "pin": PIN, "nin": NIN,
    })
    assert r.status_code == 200
    assert r.json()["state"] == "accepted"

    # Seller no longer sees the device, buyer does
    assert client.get(f"{API}/devices/{device_id}", headers=seller).status_code == 403
    r = client.get(f"{API}/devices/{device_id}", headers=buyer)
    assert r.json()["ownership"] is True

    r = client.post(f"{API}/devices/{device_id}/status", headers=buyer, json={
        "status": "active", "pin": PIN,
    })
    assert r.status_code == 200
    assert r.json()["status"] == "active"

    r = client.get(f"{API}/devices/{device_id}/history", headers=seller)
    assert r.status_code == 200
    assert len(r.json()["transfers"]) == 1

    r = client.get(f"{API}/wallet", headers=seller)
    assert r.json()["balance"] == 300


def test_wrong_pin_reports_remaining_attempts_then_locks(client):
    headers = api_signup(client, "alice@test.com")
    device_id = _register(client, headers, has_receipt=True).json()["device_id"]

    for remaining in (4, 3, 2, 1):
        r = client.post(f"{API}/devices/{device_id}/status", headers=headers, json={
            "status": "lost", "pin": "999999",
        })
        assert r.status_code == 401
        assert r.json()["detail"]["remaining_attempts"] == remaining

    r = client.post(f"{API}/devices/{device_id}/status", headers=headers, json={
        "status": "lost", "pin": "999999",
    })
    assert r.status_code == 429
    assert r.json()["detail"]["error"] == "locked_out"
    assert int(r.headers["Retry-After"]) > 0


def test_not_verified_transfer(client):
    seller = api_signup(client, "seller@test.com")
    device_id = _register(client, seller).json()["device_id"]
    r = client.post(f"{API}/transfers", headers=seller, json={
        "device_id": device_id,
        "recipient_contact": "buyer@test.com",
        "recipient_name": "Buyer",
        "pin": PIN,
    })
    assert r.status_code == 409
    assert r.json()["detail"]["error"] == "not_verified"

    r = client.post(f"{API}/devices/{device_id}/verify", headers=seller, json={"method": "receipt"})
    assert r.status_code == 200
    assert r.json()["verification_status"] == "verified"


def test_public_imei_search(client):
    headers = api_signup(client, "alice@test.com")
    device_id = _register(client, headers).json()["device_id"]

    r = client.get(f"{API}/search/imei/123456789012345")
    assert r.status_code == 200
    assert r.json()["registered"] is True
    assert r.json()["reported"] is False

    client.post(f"{API}/devices/{device_id}/status", headers=headers, json={"status": "stolen", "pin": PIN})
    r = client.get(f"{API}/search/imei/123456789012345")
    assert r.json()["status"] == "stolen"
    assert r.json()["reported"] is True

    assert client.get(f"{API}/search/imei/123").status_code == 422


def test_wallet_top_up(client):
    headers = api_signup(client, "alice@test.com")

    r = client.post(f"{API}/wallet/topup", headers=headers, json={"points": 1000})
    assert r.status_code == 200
    assert r.json()["balance"] == 1500
    assert r.json()["transactions"][0]["amount"] == 1000

    r = client.post(f"{API}/wallet/topup", headers=headers, json={"points": 7})
    assert r.status_code == 422
    assert r.json()["detail"]["field"] == "points"


def test_insufficient_points(client):
    headers = api_signup(client, "alice@test.com")
    for n in range(5):
        assert _register(client, headers, imei=f"{n + 1:015d}").status_code == 201

    r = _register(client, headers, imei="999999999999999")
    assert r.status_code == 402
    assert r.json()["detail"]["error"] == "insufficient_balance"
