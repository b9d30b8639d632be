"""
Заказы: оформление со списанием остатков, смена статуса, удаление.

Остатки меняются только здесь и только внутри одной транзакции с самим заказом:
либо записывается всё (заказ, позиции, списание), либо ничего.
"""
from collections import OrderedDict
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from flowershop.errors import AppError, ConflictError, InternalError, NotFoundError, ValidationError
from flowershop.logger import logger
from flowershop.models.catalog import Flower
from flowershop.models.order import Order, OrderItem
from flowershop.models.order_status_log import OrderStatusLog
from flowershop.utils.enums import OrderStatus, VALID_NEXT


def _clean(s: Optional[str]) -> str:
    return (s or "").strip()


def _merge_items(items: Iterable[dict]) -> "OrderedDict[int, int]":
    """flower_id -> суммарное количество; повторы одного цветка складываются."""
    wanted: "OrderedDict[int, int]" = OrderedDict()
    for item in items:
        flower_id = item.get("flower_id")
        qty = item.get("quantity")
        if not isinstance(flower_id, int) or isinstance(flower_id, bool):
            raise ValidationError("Некорректный flower_id в позиции заказа", data={"item": item})
        if not isinstance(qty, int) or isinstance(qty, bool) or qty <= 0:
            raise ValidationError("Количество должно быть положительным целым числом", data={"item": item})
        wanted[flower_id] = wanted.get(flower_id, 0) + qty
    return wanted


def _lock_flowers(db: Session, flower_ids: Iterable[int]) -> Dict[int, Flower]:
    # FOR UPDATE в порядке id: параллельные заказы на те же цветы ждут друг друга,
    # а не читают один и тот же остаток (SQLite клаузу игнорирует)
    rows = (
        db.query(Flower)
        .filter(Flower.id.in_(list(flower_ids)))
        .order_by(Flower.id)
        .with_for_update()
        .all()
    )
    return {f.id: f for f in rows}


def _check_flowers(flowers: Dict[int, Flower], wanted: Dict[int, int]) -> None:
    missing = [fid for fid in wanted if fid not in flowers]
    if missing:
        raise NotFoundError(
            "Цветы не найдены: {0}".format(", ".join(str(i) for i in missing)),
            data={"missing_ids": missing},
        )

    unavailable = [
        {"flower_id": fid, "name": flowers[fid].name}
        for fid in wanted
        if not flowers[fid].is_available
    ]
    if unavailable:
        raise ConflictError(
            "Недоступны для заказа: {0}".format(", ".join(u["name"] for u in unavailable)),
            data={"unavailable": unavailable},
        )

    insufficient = [
        {
            "flower_id": fid,
            "name": flowers[fid].name,
            "requested": qty,
            "available": int(flowers[fid].stock_quantity),
        }
        for fid, qty in wanted.items()
        if qty > int(flowers[fid].stock_quantity)
    ]
    if insufficient:
        raise ConflictError(
            "Недостаточно на складе: {0}".format("; ".join(
                '"{name}" (#{flower_id}) запрошено {requested}, доступно {available}'.format(**p)
                for p in insufficient
            )),
            data={"insufficient": insufficient},
        )


def _order_query(db: Session):
    return db.query(Order).options(selectinload(Order.items).selectinload(OrderItem.flower))


# ---------- ОФОРМЛЕНИЕ ----------
def place_order(
    db: Session,
    customer_name: Optional[str],
    customer_phone: Optional[str],
    customer_address: Optional[str],
    items: List[dict],
    payment_method: Optional[str] = None,
    notes: Optional[str] = None,
    user_id: Optional[int] = None,
) -> Order:
    name, phone, address = _clean(customer_name), _clean(customer_phone), _clean(customer_address)
    if not name or not phone or not address or not items:
        raise ValidationError("Имя, телефон, адрес и позиции заказа обязательны")

    wanted = _merge_items(items)

    try:
        flowers = _lock_flowers(db, wanted.keys())
        _check_flowers(flowers, wanted)

        order = Order(
            user_id=user_id,
            contact_name=name,
            contact_phone=phone,
            shipping_address=address,
            payment_method=_clean(payment_method) or "cash",
            notes=_clean(notes) or None,
            status=OrderStatus.NEW.value,
        )

        # позиции + списание остатков; цена берётся из каталога, не от клиента
        total = Decimal("0.00")
        for flower_id, qty in wanted.items():
            f = flowers[flower_id]
            unit_price = Decimal(str(f.price))
            line_total = unit_price * qty
            total += line_total
            order.items.append(OrderItem(
                flower=f,
                quantity=qty,
                price=unit_price,
                line_total=line_total,
            ))
            f.stock_quantity = int(f.stock_quantity) - qty
            f.popularity = int(f.popularity or 0) + qty

        order.total_amount = total
        db.add(order)
        db.commit()
    except AppError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("order_create_failed", error=str(e), exc_info=True)
        raise InternalError("Ошибка при создании заказа") from e

    logger.info(
        "order_created",
        order_id=order.id,
        user_id=user_id,
        total_amount=str(total),
        items=len(wanted),
    )
    return get_order(db, order.id)


# ---------- ЧТЕНИЕ ----------
def get_order(db: Session, order_id: int) -> Order:
    order = _order_query(db).populate_existing().filter(Order.id == order_id).first()
    if not order:
        raise NotFoundError("Заказ не найден")
    return order


def list_orders(db: Session, status: Optional[str] = None) -> List[Order]:
    q = _order_query(db).order_by(Order.created_at.desc(), Order.id.desc())
    if status:
        q = q.filter(Order.status == _parse_status(status).value)
    return q.all()


def list_user_orders(db: Session, user_id: int) -> List[Order]:
    return (
        _order_query(db)
        .filter(Order.user_id == user_id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )


def user_order_stats(db: Session, user_id: int) -> dict:
    count = db.query(func.count(Order.id)).filter(Order.user_id == user_id).scalar() or 0
    spent = (
        db.query(func.coalesce(func.sum(Order.total_amount), 0))
        .filter(Order.user_id == user_id, Order.status == OrderStatus.DELIVERED.value)
        .scalar()
    )
    return {"orders_count": int(count), "total_spent": float(spent or 0)}


# ---------- СМЕНА СТАТУСА ----------
def _parse_status(value: Optional[str]) -> OrderStatus:
    try:
        return OrderStatus((value or "").strip().lower())
    except ValueError:
        raise ValidationError(
            "Недопустимый статус. Доступные статусы: {0}".format(", ".join(s.value for s in OrderStatus)),
            data={"allowed": [s.value for s in OrderStatus]},
        )


def _lock_order(db: Session, order_id: int) -> Order:
    order = (
        db.query(Order)
        .filter(Order.id == order_id)
        .with_for_update()
        .first()
    )
    if not order:
        raise NotFoundError("Заказ не найден")
    return order


def _restock(order: Order) -> None:
    """Вернуть количество каждой позиции на склад (компенсация списания)."""
    for item in order.items:
        # инкремент на стороне БД, а не read-modify-write
        item.flower.stock_quantity = Flower.stock_quantity + item.quantity
    logger.info("stock_restored", order_id=order.id, items=len(order.items))


def change_status(db: Session, order_id: int, new_status: Optional[str], actor: str = "admin") -> Order:
    target = _parse_status(new_status)

    try:
        order = _lock_order(db, order_id)
        current = OrderStatus(order.status)

        # повторная установка того же статуса ничего не меняет (и не возвращает остатки дважды)
        if target == current:
            db.commit()
            return order

        if current.is_terminal:
            raise ConflictError(
                "Заказ в статусе {0}, изменить статус нельзя".format(current.value),
                data={"from": current.value, "to": target.value},
            )
        if target not in VALID_NEXT[current]:
            raise ConflictError(
                "Недопустимый переход статуса: {0} → {1}".format(current.value, target.value),
                data={"from": current.value, "to": target.value},
            )

        if target is OrderStatus.CANCELLED:
            _restock(order)

        order.status = target.value
        order.updated_at = datetime.utcnow()
        db.add(OrderStatusLog(order_id=order.id, old_status=current.value, new_status=target.value, user=actor))
        db.commit()
    except AppError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("order_status_change_failed", order_id=order_id, error=str(e), exc_info=True)
        raise InternalError("Ошибка при обновлении статуса заказа") from e

    logger.info("order_status_changed", order_id=order.id, old=current.value, new=target.value, actor=actor)
    return order


# ---------- УДАЛЕНИЕ ----------
def delete_order(db: Session, order_id: int) -> None:
    try:
        order = _lock_order(db, order_id)
        # если заказ не отменён, сначала возвращаем цветы на склад
        if order.status != OrderStatus.CANCELLED.value:
            _restock(order)
        db.delete(order)
        db.commit()
    except AppError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("order_delete_failed", order_id=order_id, error=str(e), exc_info=True)
        raise InternalError("Ошибка при удалении заказа") from e

    logger.info("order_deleted", order_id=order_id)


def revenue_since(db: Session, since: Optional[datetime] = None) -> float:
    """Выручка без отменённых заказов (для дашборда)."""
    q = db.query(func.coalesce(func.sum(Order.total_amount), 0)).filter(
        Order.status != OrderStatus.CANCELLED.value
    )
    if since is not None:
        q = q.filter(Order.created_at >= since)
    return float(q.scalar() or 0)


def month_ago() -> datetime:
    return datetime.utcnow() - timedelta(days=30)
