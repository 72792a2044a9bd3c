# trowool/models/cart.py
# Модель CartItem: одна строка корзины на (пользователь, товар, цвет).
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, CheckConstraint, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
from trowool.db.base import Base
from trowool.models.product import Product
from trowool.models.user import User

COLOR_MAX_LENGTH = 50

class CartItem(Base):
    __tablename__ = "cart_items"
    __table_args__ = (
        UniqueConstraint("user_id", "product_id", "color", name="uq_cart_items_user_product_color"),
        CheckConstraint("quantity > 0", name="ck_cart_items_quantity_positive"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    color = Column(String(COLOR_MAX_LENGTH), nullable=False)
    quantity = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship(User, back_populates="cart_items")
    product = relationship(Product, back_populates="cart_items")

    # Денормализованные поля товара для отображения корзины
    @property
    def name(self) -> str:
        return self.product.name

    @property
    def price(self):
        return self.product.price

    @property
    def stock(self) -> int:
        return self.product.stock

    @property
    def images(self) -> list[str]:
        return [image.image_url for image in self.product.images]
