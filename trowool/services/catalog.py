# trowool/services/catalog.py
# Чтение каталога для корзины: наличие товара и остаток на складе.
from sqlalchemy.orm import Session

from trowool.models.product import Product


def product_lock_query(db: Session, product_id: int):
    """SELECT ... FOR UPDATE по строке товара."""
    return (
        db.query(Product)
        .filter(Product.id == product_id)
        .with_for_update()
        .populate_existing()
    )


def lock_product(db: Session, product_id: int) -> Product | None:
    """
    Блокировка держится до конца текущей транзакции; populate_existing
    обновляет stock, если товар уже был загружен в сессию.
    """
    return product_lock_query(db, product_id).first()
