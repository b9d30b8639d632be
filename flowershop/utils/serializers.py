from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from flowershop.models.catalog import Category, Flower
from flowershop.models.order import Order, OrderItem
from flowershop.models.review import Review
from flowershop.models.user import User


def _money(v: Optional[Decimal]) -> float:
    return float(v or 0)


def _dt(v: Optional[datetime]) -> Optional[str]:
    return v.isoformat() if v else None


def category_to_dict(c: Category) -> Dict[str, Any]:
    return {
        "id": c.id,
        "name": c.name,
        "slug": c.slug,
        "description": c.description,
        "image_url": c.image_url,
        "created_at": _dt(c.created_at),
        "updated_at": _dt(c.updated_at),
    }


def flower_to_dict(f: Flower) -> Dict[str, Any]:
    """Конвертирует объект Flower в словарь для API"""
    return {
        "id": f.id,
        "name": f.name,
        "description": f.description,
        "price": _money(f.price),
        "stock_quantity": f.stock_quantity,
        "image_url": f.image_url,
        "popularity": f.popularity,
        "is_available": f.is_available,
        "category_id": f.category_id,
        "category_name": f.category.name if f.category else None,
        "created_at": _dt(f.created_at),
        "updated_at": _dt(f.updated_at),
    }


def flower_summary(f: Optional[Flower]) -> Optional[Dict[str, Any]]:
    if f is None:
        return None
    return {"id": f.id, "name": f.name, "image_url": f.image_url, "price": _money(f.price)}


def order_item_to_dict(i: OrderItem) -> Dict[str, Any]:
    return {
        "id": i.id,
        "flower_id": i.flower_id,
        "quantity": i.quantity,
        "price": _money(i.price),
        "line_total": _money(i.line_total),
        "flower": flower_summary(i.flower),
    }


def order_to_dict(o: Order) -> Dict[str, Any]:
    return {
        "id": o.id,
        "user_id": o.user_id,
        "status": o.status,
        "total_amount": _money(o.total_amount),
        "customer_name": o.contact_name,
        "customer_phone": o.contact_phone,
        "customer_address": o.shipping_address,
        "payment_method": o.payment_method,
        "notes": o.notes,
        "created_at": _dt(o.created_at),
        "updated_at": _dt(o.updated_at),
        "items": [order_item_to_dict(i) for i in o.items],
    }


def user_to_dict(u: User) -> Dict[str, Any]:
    # password_hash наружу не отдаём
    return {
        "id": u.id,
        "email": u.email,
        "telegram_id": u.telegram_id,
        "username": u.username,
        "first_name": u.first_name,
        "last_name": u.last_name,
        "name": u.display_name,
        "phone": u.phone,
        "address": u.address,
        "is_admin": u.is_admin,
        "is_active": u.is_active,
        "created_at": _dt(u.created_at),
    }


def review_to_dict(r: Review) -> Dict[str, Any]:
    return {
        "id": r.id,
        "flower_id": r.flower_id,
        "user_id": r.user_id,
        "user_name": r.user.display_name if r.user else None,
        "rating": r.rating,
        "comment": r.comment,
        "created_at": _dt(r.created_at),
    }
