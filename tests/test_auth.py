import hashlib
import hmac
import json
from urllib.parse import urlencode

import pytest

from flowershop import config

BOT_TOKEN = "123456:TEST-TOKEN"


def signed_init_data(user: dict, bot_token: str = BOT_TOKEN) -> str:
    fields = {"auth_date": "1700000000", "query_id": "AAH", "user": json.dumps(user)}
    check = "\n".join(f"{k}={v}" for k, v in sorted(fields.items()))
    secret = hmac.new(b"WebAppData", bot_token.encode(), hashlib.sha256).digest()
    fields["hash"] = hmac.new(secret, check.encode(), hashlib.sha256).hexdigest()
    return urlencode(fields)


def _auth(token):
    return {"Authorization": f"Bearer {token}"}


# ---------- регистрация / вход ----------
def test_register_returns_user_and_token(client):
    r = client.post("/api/auth/register", json={"email": "Anna@Example.com", "password": "pw", "first_name": "Анна"})

    assert r.status_code == 201
    data = r.json()["data"]
    assert data["user"]["email"] == "anna@example.com"
    assert data["user"]["name"] == "Анна"
    assert "password_hash" not in data["user"]

    me = client.get("/api/auth/me", headers=_auth(data["token"]))
    assert me.json()["data"]["id"] == data["user"]["id"]


def test_register_duplicate_email(client):
    client.post("/api/auth/register", json={"email": "a@example.com", "password": "pw"})

    r = client.post("/api/auth/register", json={"email": "A@example.com", "password": "other"})

    assert r.status_code == 409


def test_register_requires_email_and_password(client):
    assert client.post("/api/auth/register", json={"email": "a@example.com"}).status_code == 400


def test_login(client, make_user):
    make_user(email="bob@example.com", password="secret")

    r = client.post("/api/auth/login", json={"email": "bob@example.com", "password": "secret"})
    assert r.status_code == 200
    assert r.json()["data"]["token"]

    bad = client.post("/api/auth/login", json={"email": "bob@example.com", "password": "wrong"})
    assert bad.status_code == 401
    assert bad.json()["data"] is None


def test_login_of_inactive_user_is_forbidden(client, make_user):
    make_user(email="off@example.com", password="secret", is_active=False)

    r = client.post("/api/auth/login", json={"email": "off@example.com", "password": "secret"})

    assert r.status_code == 403


def test_me_requires_token(client):
    assert client.get("/api/auth/me").status_code == 401


def test_profile_update_and_password_change(client, make_user, bearer):
    headers = bearer(make_user(email="p@example.com", password="old"))

    r = client.put("/api/auth/me", json={"phone": "+7 777", "address": "Алматы"}, headers=headers)
    assert r.json()["data"]["phone"] == "+7 777"

    wrong = client.put("/api/auth/me", json={"current_password": "nope", "new_password": "new"}, headers=headers)
    assert wrong.status_code == 401

    client.put("/api/auth/me", json={"current_password": "old", "new_password": "new"}, headers=headers)
    login = client.post("/api/auth/login", json={"email": "p@example.com", "password": "new"})
    assert login.status_code == 200


# ---------- Telegram ----------
def test_telegram_creates_then_logs_in(client):
    body = {"telegram_id": 42, "initData": "query_id=x"}

    first = client.post("/api/auth/verify-telegram", json=body)
    assert first.status_code == 201
    user = first.json()["data"]["user"]
    assert user["telegram_id"] == "42"
    assert user["username"] == "User_42"
    assert first.json()["data"]["token"]

    again = client.post("/api/auth/verify-telegram", json=body)
    assert again.status_code == 200
    assert again.json()["data"]["user"]["id"] == user["id"]


def test_telegram_requires_init_data(client):
    assert client.post("/api/auth/verify-telegram", json={"telegram_id": 42}).status_code == 400


def test_telegram_links_to_current_user(client, make_user, bearer):
    uid = make_user(email="link@example.com")

    r = client.post("/api/auth/verify-telegram", json={"telegram_id": "77", "initData": "x=1"}, headers=bearer(uid))

    assert r.status_code == 200
    assert r.json()["data"]["user"]["id"] == uid
    assert r.json()["data"]["user"]["telegram_id"] == "77"
    assert "token" not in r.json()["data"]


def test_telegram_already_linked_elsewhere(client, make_user, bearer):
    make_user(email="owner@example.com", telegram_id="77")
    other = make_user(email="other@example.com")

    r = client.post("/api/auth/verify-telegram", json={"telegram_id": "77", "initData": "x=1"}, headers=bearer(other))

    assert r.status_code == 409


def test_telegram_signature_is_checked_when_bot_token_set(client, monkeypatch):
    monkeypatch.setattr(config, "TELEGRAM_BOT_TOKEN", BOT_TOKEN)
    init_data = signed_init_data({"id": 555, "username": "flora"})

    r = client.post("/api/auth/verify-telegram", json={"initData": init_data})
    assert r.status_code == 201
    assert r.json()["data"]["user"]["telegram_id"] == "555"
    assert r.json()["data"]["user"]["username"] == "flora"

    forged = signed_init_data({"id": 555}, bot_token="999:OTHER")
    assert client.post("/api/auth/verify-telegram", json={"initData": forged}).status_code == 401

    mismatch = client.post("/api/auth/verify-telegram", json={"telegram_id": 1, "initData": init_data})
    assert mismatch.status_code == 401


# ---------- пользователи ----------
def test_users_listing_is_admin_only(client, admin_headers, user_headers):
    assert client.get("/api/users", headers=user_headers).status_code == 403

    users = client.get("/api/users", headers=admin_headers).json()["data"]
    assert {u["email"]: u["role"] for u in users} == {
        "admin@example.com": "admin",
        "customer@example.com": "user",
    }
    assert all(u["status"] == "active" for u in users)


def test_user_detail_self_or_admin(client, make_user, bearer, admin_headers):
    me = make_user(email="me@example.com")
    other = make_user(email="other@example.com")

    assert client.get(f"/api/users/{me}", headers=bearer(me)).status_code == 200
    assert client.get(f"/api/users/{other}", headers=bearer(me)).status_code == 403
    assert client.get(f"/api/users/{other}", headers=admin_headers).status_code == 200
    assert client.get("/api/users/9999", headers=admin_headers).status_code == 404


def test_block_and_unblock_user(client, make_user, bearer, admin_headers):
    uid = make_user(email="victim@example.com")
    headers = bearer(uid)

    r = client.patch(f"/api/users/{uid}/status", json={"status": "blocked"}, headers=admin_headers)
    assert r.json()["data"] == {"id": uid, "status": "blocked"}
    assert client.get("/api/auth/me", headers=headers).status_code == 403

    client.patch(f"/api/users/{uid}/status", json={"status": "active"}, headers=admin_headers)
    assert client.get("/api/auth/me", headers=headers).status_code == 200


def test_admin_cannot_be_blocked(client, make_user, admin_headers):
    other_admin = make_user(email="boss@example.com", is_admin=True)

    r = client.patch(f"/api/users/{other_admin}/status", json={"status": "blocked"}, headers=admin_headers)

    assert r.status_code == 400


def test_unknown_user_status(client, make_user, admin_headers):
    uid = make_user()
    assert client.patch(f"/api/users/{uid}/status", json={"status": "sleeping"}, headers=admin_headers).status_code == 400


@pytest.mark.parametrize("count_only", [False, True])
def test_user_orders(client, make_user, make_flower, bearer, admin_headers, order_payload, count_only):
    uid = make_user()
    headers = bearer(uid)
    p = make_flower(price="10.00", stock=10)
    first = client.post("/api/orders", json=order_payload((p, 2)), headers=headers).json()["data"]["id"]
    client.post("/api/orders", json=order_payload((p, 1)), headers=headers)
    client.put(f"/api/orders/{first}/status", json={"status": "delivered"}, headers=admin_headers)

    r = client.get(f"/api/users/{uid}/orders", params={"count_only": count_only}, headers=headers)

    assert r.status_code == 200
    if count_only:
        assert r.json()["data"] == {"orders_count": 2, "total_spent": 20.0}
    else:
        assert len(r.json()["data"]) == 2


def test_blocked_user_is_listed_as_inactive(client, make_user, admin_headers):
    uid = make_user(email="blocked@example.com")
    client.patch(f"/api/users/{uid}/status", json={"status": "blocked"}, headers=admin_headers)

    users = client.get("/api/users", headers=admin_headers).json()["data"]

    assert {u["email"]: u["status"] for u in users}["blocked@example.com"] == "inactive"
