import hashlib
import hmac
import json
from urllib.parse import urlencode

import jwt

from flowershop import config
from flowershop.utils.security import (
    check_telegram_init_data,
    create_access_token,
    decode_access_token,
    hash_password,
    verify_password,
)


def test_password_hashing():
    h = hash_password("розы")

    assert h != "розы"
    assert verify_password("розы", h)
    assert not verify_password("тюльпаны", h)
    assert not verify_password("розы", None)
    assert not verify_password("розы", "not-a-bcrypt-hash")


def test_token_round_trip():
    payload = decode_access_token(create_access_token(7, is_admin=True, telegram_id="42"))

    assert payload["sub"] == "7"
    assert payload["is_admin"] is True
    assert payload["telegram_id"] == "42"


def test_foreign_or_broken_tokens_are_rejected():
    foreign = jwt.encode({"sub": "1"}, "other-secret", algorithm=config.JWT_ALGORITHM)

    assert decode_access_token(foreign) is None
    assert decode_access_token("garbage") is None


def _sign(fields, token):
    check = "\n".join(f"{k}={v}" for k, v in sorted(fields.items()))
    secret = hmac.new(b"WebAppData", token.encode(), hashlib.sha256).digest()
    return hmac.new(secret, check.encode(), hashlib.sha256).hexdigest()


def test_telegram_init_data():
    fields = {"auth_date": "1", "user": json.dumps({"id": 9, "first_name": "Ева"})}
    init_data = urlencode({**fields, "hash": _sign(fields, "t0ken")})

    parsed = check_telegram_init_data(init_data, "t0ken")

    assert parsed["user"]["id"] == 9
    assert "hash" not in parsed
    assert check_telegram_init_data(init_data, "wrong") is None
    assert check_telegram_init_data(init_data.replace("auth_date=1", "auth_date=2"), "t0ken") is None
    assert check_telegram_init_data("auth_date=1", "t0ken") is None
