from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from flowershop.db import get_db
from flowershop.middleware.rbac import get_current_user, require_admin
from flowershop.models.user import User
from flowershop.schemas import FlowerIn, ReviewIn
from flowershop.services import catalog
from flowershop.services import reviews as review_service
from flowershop.utils.responses import ok
from flowershop.utils.serializers import flower_to_dict, review_to_dict

router = APIRouter(prefix="/flowers", tags=["flowers"])


# 📦 список цветов: фильтры, сортировка, пагинация
@router.get("")
def list_flowers(
    category_id: Optional[int] = Query(None),
    min_price: Optional[Decimal] = Query(None, ge=0),
    max_price: Optional[Decimal] = Query(None, ge=0),
    search: Optional[str] = Query(None),
    is_available: Optional[bool] = Query(None),
    sort: Optional[str] = Query(None, description="price_asc | price_desc | name_asc | newest | popular"),
    page: int = Query(1, ge=1),
    limit: int = Query(catalog.DEFAULT_LIMIT, ge=1, le=catalog.MAX_LIMIT),
    db: Session = Depends(get_db),
):
    result = catalog.list_flowers(
        db,
        category_id=category_id,
        min_price=min_price,
        max_price=max_price,
        search=search,
        is_available=is_available,
        sort=sort,
        page=page,
        limit=limit,
    )
    return ok({
        "flowers": [flower_to_dict(f) for f in result["flowers"]],
        "pagination": result["pagination"],
    })


@router.get("/{flower_id}")
def flower_detail(flower_id: int, db: Session = Depends(get_db)):
    return ok(flower_to_dict(catalog.get_flower(db, flower_id)))


# 💾 создание
@router.post("")
def flower_create(payload: FlowerIn, _: User = Depends(require_admin), db: Session = Depends(get_db)):
    flower = catalog.create_flower(db, **payload.model_dump())
    return ok(flower_to_dict(flower), status_code=201)


# 🔄 обновление
@router.put("/{flower_id}")
def flower_update(
    flower_id: int,
    payload: FlowerIn,
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    flower = catalog.update_flower(db, flower_id, **payload.model_dump(exclude_unset=True))
    return ok(flower_to_dict(flower))


# 🗑 удаление
@router.delete("/{flower_id}")
def flower_delete(flower_id: int, _: User = Depends(require_admin), db: Session = Depends(get_db)):
    catalog.delete_flower(db, flower_id)
    return ok({"id": flower_id, "message": "Цветок успешно удален"})


# ---------- ОТЗЫВЫ ----------
@router.get("/{flower_id}/reviews")
def flower_reviews(flower_id: int, db: Session = Depends(get_db)):
    return ok([review_to_dict(r) for r in review_service.list_reviews(db, flower_id)])


@router.post("/{flower_id}/reviews")
def flower_review_create(
    flower_id: int,
    payload: ReviewIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    review = review_service.create_review(db, flower_id, user.id, payload.rating, payload.comment)
    return ok(review_to_dict(review), status_code=201)
