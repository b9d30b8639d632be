from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from flowershop import config
from flowershop.errors import AuthError, ConflictError, NotFoundError, ValidationError
from flowershop.logger import logger
from flowershop.models.user import User
from flowershop.utils.enums import UserStatus
from flowershop.utils.security import (
    check_telegram_init_data,
    create_access_token,
    hash_password,
    verify_password,
)


def issue_token(user: User) -> str:
    return create_access_token(user.id, is_admin=user.is_admin, telegram_id=user.telegram_id)


def get_user(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if not user:
        raise NotFoundError("Пользователь не найден")
    return user


def list_users(db: Session) -> List[User]:
    return db.query(User).order_by(User.created_at.desc(), User.id.desc()).all()


# ---------- РЕГИСТРАЦИЯ / ВХОД ----------
def register(
    db: Session,
    email: Optional[str],
    password: Optional[str],
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
    phone: Optional[str] = None,
    address: Optional[str] = None,
    is_admin: bool = False,
) -> User:
    email = (email or "").strip().lower()
    if not email or not password:
        raise ValidationError("Email и пароль обязательны")

    # проверка на уникальность
    exists = db.query(User).filter(User.email == email).first()
    if exists:
        raise ConflictError("Пользователь с таким email уже существует", status_code=409)

    user = User(
        email=email,
        password_hash=hash_password(password),
        first_name=first_name,
        last_name=last_name,
        phone=phone,
        address=address,
        is_admin=is_admin,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("user_registered", user_id=user.id, is_admin=is_admin)
    return user


def authenticate(db: Session, email: Optional[str], password: Optional[str]) -> User:
    email = (email or "").strip().lower()
    if not email or not password:
        raise ValidationError("Email и пароль обязательны")

    user = db.query(User).filter(User.email == email).first()
    if not user or not verify_password(password, user.password_hash):
        logger.info("login_failed", email=email)
        raise AuthError("Неверный email или пароль")
    if not user.is_active:
        raise AuthError("Пользователь заблокирован", status_code=403)
    return user


def update_profile(
    db: Session,
    user: User,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
    phone: Optional[str] = None,
    address: Optional[str] = None,
    current_password: Optional[str] = None,
    new_password: Optional[str] = None,
) -> User:
    if new_password:
        if not verify_password(current_password or "", user.password_hash):
            raise AuthError("Неверный текущий пароль")
        user.password_hash = hash_password(new_password)

    if first_name is not None:
        user.first_name = first_name
    if last_name is not None:
        user.last_name = last_name
    if phone is not None:
        user.phone = phone
    if address is not None:
        user.address = address

    db.commit()
    db.refresh(user)
    return user


def set_status(db: Session, user_id: int, status: Optional[str]) -> Tuple[User, UserStatus]:
    try:
        new_status = UserStatus(status)
    except ValueError:
        raise ValidationError("Недопустимый статус. Разрешены: active, inactive, blocked")

    user = get_user(db, user_id)
    # Не разрешаем блокировать администраторов
    if user.is_admin and new_status is UserStatus.BLOCKED:
        raise ConflictError("Невозможно заблокировать администратора")

    user.is_active = new_status is UserStatus.ACTIVE
    db.commit()
    logger.info("user_status_changed", user_id=user.id, status=new_status.value)
    return user, new_status


# ---------- TELEGRAM ----------
def verify_telegram(
    db: Session,
    telegram_id,
    init_data: Optional[str],
    telegram_username: Optional[str] = None,
    current_user: Optional[User] = None,
) -> Tuple[User, bool]:
    """
    Вход / привязка через Telegram WebApp.

    Возвращает (пользователь, создан_ли_новый). Если у приложения задан токен бота,
    initData обязана пройти проверку подписи, и telegram_id берётся из неё.
    """
    if not init_data or (telegram_id is None and not config.TELEGRAM_BOT_TOKEN):
        raise ValidationError("Отсутствуют обязательные параметры")

    if config.TELEGRAM_BOT_TOKEN:
        fields = check_telegram_init_data(init_data, config.TELEGRAM_BOT_TOKEN)
        if fields is None:
            raise AuthError("Некорректная подпись данных Telegram")
        tg_user = fields.get("user") or {}
        signed_id = tg_user.get("id")
        if signed_id is None or (telegram_id is not None and str(telegram_id) != str(signed_id)):
            raise AuthError("telegram_id не совпадает с подписанными данными")
        telegram_id = signed_id
        telegram_username = telegram_username or tg_user.get("username")

    telegram_id = str(telegram_id)
    linked = db.query(User).filter(User.telegram_id == telegram_id).first()

    if current_user is not None:
        # Этот Telegram уже привязан к другому аккаунту
        if linked and linked.id != current_user.id:
            raise ConflictError("Этот Telegram аккаунт уже привязан к другому пользователю", status_code=409)
        current_user.telegram_id = telegram_id
        db.commit()
        db.refresh(current_user)
        logger.info("telegram_linked", user_id=current_user.id)
        return current_user, False

    if linked:
        if not linked.is_active:
            raise AuthError("Пользователь заблокирован", status_code=403)
        return linked, False

    user = User(
        telegram_id=telegram_id,
        username=telegram_username or f"User_{telegram_id}",
        is_admin=False,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("user_registered", user_id=user.id, via="telegram")
    return user, True
