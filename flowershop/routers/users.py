from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from flowershop.db import get_db
from flowershop.middleware.rbac import require_admin, require_self_or_admin
from flowershop.models.user import User
from flowershop.schemas import UserStatusUpdate
from flowershop.services import orders as order_service
from flowershop.services import users as user_service
from flowershop.utils.responses import ok
from flowershop.utils.serializers import order_to_dict, user_to_dict

router = APIRouter(prefix="/users", tags=["users"])


def _with_status(user: User) -> dict:
    data = user_to_dict(user)
    data["status"] = "active" if user.is_active else "inactive"
    data["role"] = "admin" if user.is_admin else "user"
    return data


# список пользователей
@router.get("")
def list_users(_: User = Depends(require_admin), db: Session = Depends(get_db)):
    return ok([_with_status(u) for u in user_service.list_users(db)])


@router.get("/{user_id}")
def user_detail(user_id: int, _: User = Depends(require_self_or_admin), db: Session = Depends(get_db)):
    return ok(_with_status(user_service.get_user(db, user_id)))


@router.patch("/{user_id}/status")
def change_user_status(
    user_id: int,
    payload: UserStatusUpdate,
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    user, status = user_service.set_status(db, user_id, payload.status)
    return ok({"id": user.id, "status": status.value})


@router.get("/{user_id}/orders")
def user_orders(
    user_id: int,
    count_only: bool = Query(False),
    _: User = Depends(require_self_or_admin),
    db: Session = Depends(get_db),
):
    user_service.get_user(db, user_id)
    if count_only:
        return ok(order_service.user_order_stats(db, user_id))
    return ok([order_to_dict(o) for o in order_service.list_user_orders(db, user_id)])
