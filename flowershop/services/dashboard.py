# flowershop/services/dashboard.py
from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from flowershop.models.catalog import Category, Flower
from flowershop.models.order import Order, OrderItem
from flowershop.models.user import User
from flowershop.services.orders import month_ago, revenue_since
from flowershop.utils.enums import OrderStatus


def _customer(order: Order) -> str:
    if order.contact_name:
        return order.contact_name
    if order.user:
        return order.user.display_name
    return "Неизвестный клиент"


def dashboard_stats(db: Session) -> dict:
    recent = (
        db.query(Order)
        .options(selectinload(Order.user))
        .order_by(Order.created_at.desc(), Order.id.desc())
        .limit(5)
        .all()
    )

    # Популярные товары (по количеству продаж)
    total_sold = func.sum(OrderItem.quantity).label("total_sold")
    popular = (
        db.query(Flower, total_sold)
        .join(OrderItem, OrderItem.flower_id == Flower.id)
        .group_by(Flower.id)
        .order_by(total_sold.desc(), Flower.id)
        .limit(5)
        .all()
    )

    by_status = dict(
        db.query(Order.status, func.count(Order.id)).group_by(Order.status).all()
    )

    return {
        "totalOrders": db.query(func.count(Order.id)).scalar() or 0,
        "totalUsers": db.query(func.count(User.id)).scalar() or 0,
        "totalProducts": db.query(func.count(Flower.id)).scalar() or 0,
        "totalCategories": db.query(func.count(Category.id)).scalar() or 0,
        "newOrders": by_status.get(OrderStatus.NEW.value, 0),
        "totalRevenue": revenue_since(db),
        "monthlyRevenue": revenue_since(db, month_ago()),
        "recentOrders": [
            {
                "id": o.id,
                "date": o.created_at.isoformat() if o.created_at else None,
                "status": o.status,
                "total": float(o.total_amount or 0),
                "customer": _customer(o),
            }
            for o in recent
        ],
        "popularProducts": [
            {
                "id": f.id,
                "name": f.name,
                "image": f.image_url,
                "price": float(f.price or 0),
                "sales": int(sold or 0),
            }
            for f, sold in popular
        ],
        "ordersByStatus": {s.value: int(by_status.get(s.value, 0)) for s in OrderStatus},
    }
