"""Тела запросов. Бизнес-проверки (пустые строки, остатки и т.п.) делают сервисы."""
from decimal import Decimal
from typing import List, Optional, Union

from pydantic import BaseModel, Field


# ---- Заказы ----
class OrderItemIn(BaseModel):
    flower_id: int
    quantity: int = Field(..., gt=0)


class OrderCreate(BaseModel):
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_address: Optional[str] = None
    payment_method: Optional[str] = None
    notes: Optional[str] = None
    items: List[OrderItemIn] = []


class OrderStatusUpdate(BaseModel):
    status: str


# ---- Каталог ----
class CategoryIn(BaseModel):
    name: Optional[str] = None
    slug: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None


class FlowerIn(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[Decimal] = None
    stock_quantity: Optional[int] = None
    image_url: Optional[str] = None
    category_id: Optional[int] = None
    is_available: Optional[bool] = None


class ReviewIn(BaseModel):
    rating: int
    comment: Optional[str] = None


# ---- Пользователи ----
class RegisterIn(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None


class LoginIn(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class ProfileUpdate(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    current_password: Optional[str] = None
    new_password: Optional[str] = None


class TelegramVerifyIn(BaseModel):
    telegram_id: Optional[Union[int, str]] = None
    telegram_username: Optional[str] = None
    init_data: Optional[str] = Field(None, alias="initData")

    model_config = {"populate_by_name": True}


class UserStatusUpdate(BaseModel):
    status: str
