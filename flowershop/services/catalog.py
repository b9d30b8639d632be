import math
import re
from decimal import Decimal, InvalidOperation
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from flowershop.errors import ConflictError, NotFoundError, ValidationError
from flowershop.logger import logger
from flowershop.models.catalog import Category, Flower
from flowershop.models.order import OrderItem
from flowershop.utils.enums import FlowerSort

DEFAULT_LIMIT = 12
MAX_LIMIT = 100

# транслит для slug: "Розы" -> "rozy"
_TRANSLIT = dict(zip(
    "абвгдеёжзийклмнопрстуфхцчшщъыьэюя",
    ["a", "b", "v", "g", "d", "e", "e", "zh", "z", "i", "y", "k", "l", "m", "n", "o", "p",
     "r", "s", "t", "u", "f", "h", "ts", "ch", "sh", "sch", "", "y", "", "e", "yu", "ya"],
))


def slugify(value: str) -> str:
    s = "".join(_TRANSLIT.get(ch, ch) for ch in (value or "").strip().lower())
    s = re.sub(r"[^a-z0-9]+", "-", s).strip("-")
    return s or "category"


# =========================
# Категории
# =========================

def list_categories(db: Session) -> List[Category]:
    return db.query(Category).order_by(Category.name).all()


def get_category(db: Session, category_id: int) -> Category:
    category = db.get(Category, category_id)
    if not category:
        raise NotFoundError("Категория не найдена")
    return category


def category_flowers(db: Session, category_id: int) -> List[Flower]:
    return (
        db.query(Flower)
        .filter(Flower.category_id == category_id)
        .order_by(Flower.name)
        .all()
    )


def _ensure_unique_category(db: Session, name: str, slug: str, exclude_id: Optional[int] = None) -> None:
    q = db.query(Category).filter((Category.name == name) | (Category.slug == slug))
    if exclude_id is not None:
        q = q.filter(Category.id != exclude_id)
    if q.first():
        raise ConflictError("Категория с таким названием уже существует", status_code=409)


def create_category(
    db: Session,
    name: Optional[str],
    slug: Optional[str] = None,
    description: Optional[str] = None,
    image_url: Optional[str] = None,
) -> Category:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Название категории обязательно")
    slug = slugify(slug or name)
    _ensure_unique_category(db, name, slug)

    category = Category(name=name, slug=slug, description=description, image_url=image_url)
    db.add(category)
    db.commit()
    db.refresh(category)
    logger.info("category_created", category_id=category.id, name=name)
    return category


def update_category(
    db: Session,
    category_id: int,
    name: Optional[str] = None,
    slug: Optional[str] = None,
    description: Optional[str] = None,
    image_url: Optional[str] = None,
) -> Category:
    category = get_category(db, category_id)

    new_name = (name or "").strip() or category.name
    new_slug = slugify(slug) if slug else (slugify(new_name) if name else category.slug)
    _ensure_unique_category(db, new_name, new_slug, exclude_id=category.id)

    category.name = new_name
    category.slug = new_slug
    if description is not None:
        category.description = description
    if image_url is not None:
        category.image_url = image_url
    db.commit()
    db.refresh(category)
    return category


def delete_category(db: Session, category_id: int) -> None:
    category = get_category(db, category_id)

    # Проверим, есть ли цветы в этой категории
    flowers_count = db.query(func.count(Flower.id)).filter(Flower.category_id == category_id).scalar()
    if flowers_count:
        raise ConflictError(
            "Нельзя удалить категорию, содержащую цветы. Сначала удалите все цветы из категории.",
            data={"flowers_count": int(flowers_count)},
        )

    db.delete(category)
    db.commit()
    logger.info("category_deleted", category_id=category_id)


# =========================
# Цветы
# =========================

def _price(value, field: str = "price") -> Decimal:
    try:
        price = Decimal(str(value)).quantize(Decimal("0.01"))
    except (InvalidOperation, ValueError):
        raise ValidationError("Некорректная цена", data={"field": field})
    if price < 0:
        raise ValidationError("Цена не может быть отрицательной", data={"field": field})
    return price


def _stock(value) -> int:
    if value is None:
        return 0
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        raise ValidationError("Остаток должен быть неотрицательным целым числом")
    return value


def _like_literal(s: str) -> str:
    # % и _ в запросе ищем как обычные символы
    return s.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def list_flowers(
    db: Session,
    category_id: Optional[int] = None,
    min_price: Optional[Decimal] = None,
    max_price: Optional[Decimal] = None,
    search: Optional[str] = None,
    is_available: Optional[bool] = None,
    sort: Optional[str] = None,
    page: int = 1,
    limit: int = DEFAULT_LIMIT,
) -> dict:
    if page < 1 or limit < 1 or limit > MAX_LIMIT:
        raise ValidationError("Некорректные параметры пагинации", data={"page": page, "limit": limit})

    q = db.query(Flower)
    if category_id is not None:
        q = q.filter(Flower.category_id == category_id)
    if min_price is not None:
        q = q.filter(Flower.price >= min_price)
    if max_price is not None:
        q = q.filter(Flower.price <= max_price)
    if search and search.strip():
        q = q.filter(Flower.name.ilike(f"%{_like_literal(search.strip())}%", escape="\\"))
    if is_available is not None:
        q = q.filter(Flower.is_available == is_available)

    total = q.count()

    try:
        order = FlowerSort(sort) if sort else FlowerSort.POPULAR
    except ValueError:
        raise ValidationError(
            "Недопустимая сортировка",
            data={"allowed": [s.value for s in FlowerSort]},
        )
    order_by = {
        FlowerSort.PRICE_ASC: (Flower.price.asc(), Flower.id.asc()),
        FlowerSort.PRICE_DESC: (Flower.price.desc(), Flower.id.asc()),
        FlowerSort.NAME_ASC: (Flower.name.asc(), Flower.id.asc()),
        FlowerSort.NEWEST: (Flower.created_at.desc(), Flower.id.desc()),
        FlowerSort.POPULAR: (Flower.popularity.desc(), Flower.id.asc()),
    }[order]

    flowers = (
        q.options(selectinload(Flower.category))
        .order_by(*order_by)
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "flowers": flowers,
        "pagination": {
            "total": total,
            "totalPages": math.ceil(total / limit) if total else 0,
            "currentPage": page,
            "limit": limit,
        },
    }


def get_flower(db: Session, flower_id: int) -> Flower:
    flower = db.get(Flower, flower_id)
    if not flower:
        raise NotFoundError("Цветок не найден")
    return flower


def create_flower(
    db: Session,
    name: Optional[str],
    price,
    description: Optional[str] = None,
    stock_quantity: Optional[int] = None,
    image_url: Optional[str] = None,
    category_id: Optional[int] = None,
    is_available: Optional[bool] = None,
) -> Flower:
    name = (name or "").strip()
    if not name or price is None:
        raise ValidationError("Название и цена обязательны")
    if category_id is not None:
        get_category(db, category_id)

    flower = Flower(
        name=name,
        description=description,
        price=_price(price),
        stock_quantity=_stock(stock_quantity),
        image_url=image_url,
        category_id=category_id,
        is_available=True if is_available is None else is_available,
    )
    db.add(flower)
    db.commit()
    db.refresh(flower)
    logger.info("flower_created", flower_id=flower.id, name=name)
    return flower


def update_flower(db: Session, flower_id: int, **fields) -> Flower:
    """
    Частичное обновление: меняются только переданные поля.

    Явный null очищает description, image_url и category_id;
    для name, price, stock_quantity и is_available null игнорируется.
    """
    flower = get_flower(db, flower_id)

    if fields.get("name") is not None:
        name = fields["name"].strip()
        if not name:
            raise ValidationError("Название не может быть пустым")
        flower.name = name
    if fields.get("price") is not None:
        flower.price = _price(fields["price"])
    if fields.get("stock_quantity") is not None:
        flower.stock_quantity = _stock(fields["stock_quantity"])
    if "category_id" in fields:
        if fields["category_id"] is not None:
            get_category(db, fields["category_id"])
        flower.category_id = fields["category_id"]
    for attr in ("description", "image_url"):
        if attr in fields:
            setattr(flower, attr, fields[attr])
    if fields.get("is_available") is not None:
        flower.is_available = fields["is_available"]

    db.commit()
    db.refresh(flower)
    return flower


def delete_flower(db: Session, flower_id: int) -> None:
    flower = get_flower(db, flower_id)

    used = db.query(func.count(OrderItem.id)).filter(OrderItem.flower_id == flower_id).scalar()
    if used:
        raise ConflictError(
            "Нельзя удалить цветок, который есть в заказах",
            data={"order_items": int(used)},
        )

    db.delete(flower)
    try:
        db.commit()
    except IntegrityError:
        # позиция заказа появилась между проверкой и удалением
        db.rollback()
        raise ConflictError("Нельзя удалить цветок, который есть в заказах")
    logger.info("flower_deleted", flower_id=flower_id)
