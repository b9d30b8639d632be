# flowershop/routers/admin_dashboard.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from flowershop.db import get_db
from flowershop.middleware.rbac import require_admin
from flowershop.models.user import User
from flowershop.services.dashboard import dashboard_stats
from flowershop.utils.responses import ok

router = APIRouter(prefix="/admin", tags=["admin-dashboard"])


@router.get("/dashboard")
def dashboard(_: User = Depends(require_admin), db: Session = Depends(get_db)):
    return ok(dashboard_stats(db))
