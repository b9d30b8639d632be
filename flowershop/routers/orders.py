from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from flowershop.db import get_db
from flowershop.middleware.rbac import get_current_user, get_optional_user, require_admin
from flowershop.models.user import User
from flowershop.schemas import OrderCreate, OrderStatusUpdate
from flowershop.services import orders as order_service
from flowershop.utils.responses import ok
from flowershop.utils.serializers import order_to_dict

router = APIRouter(prefix="/orders", tags=["orders"])


# ---------- ОФОРМЛЕНИЕ ----------
@router.post("")
def create_order(
    payload: OrderCreate,
    user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    order = order_service.place_order(
        db,
        customer_name=payload.customer_name,
        customer_phone=payload.customer_phone,
        customer_address=payload.customer_address,
        items=[i.model_dump() for i in payload.items],
        payment_method=payload.payment_method,
        notes=payload.notes,
        user_id=user.id if user else None,
    )
    return ok(order_to_dict(order), status_code=201)


# ---------- ЗАКАЗЫ ПОЛЬЗОВАТЕЛЯ ----------
@router.get("/user")
def my_orders(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return ok([order_to_dict(o) for o in order_service.list_user_orders(db, user.id)])


# ---------- АДМИНКА ----------
@router.get("")
def list_orders(
    status: Optional[str] = Query(None),
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return ok([order_to_dict(o) for o in order_service.list_orders(db, status=status)])


@router.get("/{order_id}")
def order_detail(order_id: int, _: User = Depends(require_admin), db: Session = Depends(get_db)):
    return ok(order_to_dict(order_service.get_order(db, order_id)))


@router.put("/{order_id}/status")
def change_status(
    order_id: int,
    payload: OrderStatusUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    order = order_service.change_status(db, order_id, payload.status, actor=admin.email or admin.display_name)
    return ok({
        "id": order.id,
        "status": order.status,
        "updated_at": order.updated_at.isoformat() if order.updated_at else None,
    })


@router.delete("/{order_id}")
def delete_order(order_id: int, _: User = Depends(require_admin), db: Session = Depends(get_db)):
    order_service.delete_order(db, order_id)
    return ok({"id": order_id, "message": "Заказ успешно удален"})
