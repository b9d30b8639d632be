from typing import List, Optional
from datetime import datetime
from decimal import Decimal

from sqlalchemy import String, Text, ForeignKey, Integer, Numeric, Boolean, DateTime, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from flowershop.db import Base


class Category(Base):
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(120), unique=True)
    slug: Mapped[str] = mapped_column(String(120), unique=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    flowers: Mapped[List["Flower"]] = relationship("Flower", back_populates="category", passive_deletes=True)


class Flower(Base):
    __tablename__ = "flowers"
    __table_args__ = (
        CheckConstraint("stock_quantity >= 0", name="ck_flowers_stock_non_negative"),
        CheckConstraint("price >= 0", name="ck_flowers_price_non_negative"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255), index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)
    stock_quantity: Mapped[int] = mapped_column(Integer, default=0)   # остаток на складе
    image_url: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    popularity: Mapped[int] = mapped_column(Integer, default=0)       # сколько штук заказывали
    is_available: Mapped[bool] = mapped_column(Boolean, default=True)

    category_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("categories.id", ondelete="SET NULL"), nullable=True, index=True
    )
    category: Mapped[Optional["Category"]] = relationship("Category", back_populates="flowers")

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
