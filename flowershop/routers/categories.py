from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from flowershop.db import get_db
from flowershop.middleware.rbac import require_admin
from flowershop.models.user import User
from flowershop.schemas import CategoryIn
from flowershop.services import catalog
from flowershop.utils.responses import ok
from flowershop.utils.serializers import category_to_dict, flower_to_dict

router = APIRouter(prefix="/categories", tags=["categories"])


@router.get("")
def categories_index(db: Session = Depends(get_db)):
    return ok([category_to_dict(c) for c in catalog.list_categories(db)])


@router.get("/{category_id}")
def category_detail(category_id: int, db: Session = Depends(get_db)):
    category = catalog.get_category(db, category_id)
    data = category_to_dict(category)
    data["flowers"] = [flower_to_dict(f) for f in catalog.category_flowers(db, category_id)]
    return ok(data)


@router.post("")
def category_create(payload: CategoryIn, _: User = Depends(require_admin), db: Session = Depends(get_db)):
    category = catalog.create_category(db, **payload.model_dump())
    return ok(category_to_dict(category), status_code=201)


@router.put("/{category_id}")
def category_update(
    category_id: int,
    payload: CategoryIn,
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    category = catalog.update_category(db, category_id, **payload.model_dump())
    return ok(category_to_dict(category))


@router.delete("/{category_id}")
def category_delete(category_id: int, _: User = Depends(require_admin), db: Session = Depends(get_db)):
    catalog.delete_category(db, category_id)
    return ok({"id": category_id, "message": "Категория успешно удалена"})
