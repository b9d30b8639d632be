from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from flowershop.db import get_db
from flowershop.middleware.rbac import get_current_user, get_optional_user
from flowershop.models.user import User
from flowershop.schemas import LoginIn, ProfileUpdate, RegisterIn, TelegramVerifyIn
from flowershop.services import users as user_service
from flowershop.utils.responses import ok
from flowershop.utils.serializers import user_to_dict

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register")
def register(payload: RegisterIn, db: Session = Depends(get_db)):
    user = user_service.register(db, **payload.model_dump())
    return ok({"user": user_to_dict(user), "token": user_service.issue_token(user)}, status_code=201)


# обработка логина
@router.post("/login")
def login(payload: LoginIn, db: Session = Depends(get_db)):
    user = user_service.authenticate(db, payload.email, payload.password)
    return ok({"user": user_to_dict(user), "token": user_service.issue_token(user)})


@router.post("/verify-telegram")
def verify_telegram(
    payload: TelegramVerifyIn,
    current: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    user, created = user_service.verify_telegram(
        db,
        telegram_id=payload.telegram_id,
        init_data=payload.init_data,
        telegram_username=payload.telegram_username,
        current_user=current,
    )
    data = {"user": user_to_dict(user), "telegramLinked": True}
    if current is None:
        data["token"] = user_service.issue_token(user)
    return ok(data, status_code=201 if created else 200)


@router.get("/me")
def whoami(user: User = Depends(get_current_user)):
    return ok(user_to_dict(user))


@router.put("/me")
def update_me(payload: ProfileUpdate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    user = user_service.update_profile(db, user, **payload.model_dump())
    return ok(user_to_dict(user))
