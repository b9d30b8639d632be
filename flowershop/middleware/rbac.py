from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from flowershop.db import get_db
from flowershop.errors import AuthError
from flowershop.models.user import User
from flowershop.utils.security import decode_access_token


def _bearer_token(request: Request) -> Optional[str]:
    auth = request.headers.get("authorization") or ""
    if not auth.lower().startswith("bearer "):
        return None
    return auth.split(" ", 1)[1].strip() or None


def _user_from_token(db: Session, token: str) -> User:
    payload = decode_access_token(token)
    if not payload or not str(payload.get("sub", "")).isdigit():
        raise AuthError("Не авторизован, неверный токен")

    user = db.get(User, int(payload["sub"]))
    if not user:
        raise AuthError("Не авторизован, пользователь не найден")
    if not user.is_active:
        raise AuthError("Пользователь заблокирован", status_code=403)
    return user


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    token = _bearer_token(request)
    if not token:
        raise AuthError("Не авторизован, требуется токен")
    return _user_from_token(db, token)


def get_optional_user(request: Request, db: Session = Depends(get_db)) -> Optional[User]:
    """Пользователь, если передан токен; анонимно None (заказ можно оформить без аккаунта)."""
    token = _bearer_token(request)
    if not token:
        return None
    return _user_from_token(db, token)


def require_admin(user: User = Depends(get_current_user)) -> User:
    # 🔹 только админ
    if not user.is_admin:
        raise AuthError("Доступ запрещен, требуются права администратора", status_code=403)
    return user


def require_self_or_admin(user_id: int, user: User = Depends(get_current_user)) -> User:
    if user.id != user_id and not user.is_admin:
        raise AuthError("Недостаточно прав для просмотра данных этого пользователя", status_code=403)
    return user
