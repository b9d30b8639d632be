import hashlib
import hmac
import json
from datetime import datetime, timedelta
from typing import Optional
from urllib.parse import parse_qsl

import bcrypt
import jwt

from flowershop import config


# ---- Пароли ----
def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=10)).decode("utf-8")


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # битый хэш в БД
        return False


# ---- JWT ----
def create_access_token(user_id: int, is_admin: bool = False, telegram_id: Optional[str] = None) -> str:
    payload = {
        "sub": str(user_id),
        "is_admin": bool(is_admin),
        "telegram_id": telegram_id,
        "exp": datetime.utcnow() + timedelta(minutes=config.JWT_EXPIRES_MINUTES),
    }
    return jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def decode_access_token(token: str) -> Optional[dict]:
    """Payload токена или None, если подпись/срок не прошли."""
    try:
        return jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    except jwt.PyJWTError:
        return None


# ---- Telegram WebApp ----
def check_telegram_init_data(init_data: str, bot_token: str) -> Optional[dict]:
    """
    Проверка подписи initData по схеме Telegram WebApp:
    secret = HMAC_SHA256("WebAppData", bot_token), hash = HMAC_SHA256(secret, data_check_string).
    Возвращает распарсенные поля (user уже dict) или None, если подпись не сошлась.
    """
    fields = dict(parse_qsl(init_data or "", keep_blank_values=True))
    received_hash = fields.pop("hash", None)
    if not received_hash:
        return None

    data_check_string = "\n".join(f"{k}={v}" for k, v in sorted(fields.items()))
    secret = hmac.new(b"WebAppData", bot_token.encode(), hashlib.sha256).digest()
    expected = hmac.new(secret, data_check_string.encode(), hashlib.sha256).hexdigest()
    if not hmac.compare_digest(received_hash, expected):
        return None

    if "user" in fields:
        try:
            fields["user"] = json.loads(fields["user"])
        except ValueError:
            return None
    return fields
