from typing import List, Optional

from sqlalchemy.orm import Session, selectinload

from flowershop.errors import ValidationError
from flowershop.models.review import Review
from flowershop.services.catalog import get_flower


def list_reviews(db: Session, flower_id: int) -> List[Review]:
    get_flower(db, flower_id)
    return (
        db.query(Review)
        .options(selectinload(Review.user))
        .filter(Review.flower_id == flower_id)
        .order_by(Review.created_at.desc(), Review.id.desc())
        .all()
    )


def create_review(db: Session, flower_id: int, user_id: int, rating: int, comment: Optional[str] = None) -> Review:
    get_flower(db, flower_id)
    if not isinstance(rating, int) or not 1 <= rating <= 5:
        raise ValidationError("Оценка должна быть от 1 до 5")

    review = Review(flower_id=flower_id, user_id=user_id, rating=rating, comment=(comment or "").strip() or None)
    db.add(review)
    db.commit()
    db.refresh(review)
    return review
