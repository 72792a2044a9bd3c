# trowool/schemas/cart.py
# Схемы запросов и ответов корзины.
# Здесь только типы и границы столбцов БД; бизнес-правила проверяет сервис корзины.
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from trowool.db.base import MAX_INT_ID
from trowool.models.cart import COLOR_MAX_LENGTH


class CartItemCreate(BaseModel):
    product_id: int = Field(ge=1, le=MAX_INT_ID)
    # пустой цвет отклоняет сервис
    color: str = Field(max_length=COLOR_MAX_LENGTH)
    quantity: int = 1


class CartItemUpdate(BaseModel):
    quantity: int


class CartItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int
    color: str
    quantity: int
    name: str
    price: float
    stock: int
    images: list[str]
    created_at: datetime | None = None
    updated_at: datetime | None = None
