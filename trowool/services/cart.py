# trowool/services/cart.py
# Сервис корзины: все чтения и изменения корзины пользователя.
#
# Каждая изменяющая операция выполняется одной транзакцией и берёт блокировки
# в фиксированном порядке: сначала строка товара, затем строка корзины.
# Поэтому параллельные добавления одного и того же (товар, цвет) идут по очереди
# и не теряют обновлений. Остаток товара только проверяется, но не резервируется.

import logging
from contextlib import contextmanager

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload, selectinload

from trowool.core.config import settings
from trowool.core.errors import (
    CartError,
    InsufficientStock,
    InvalidInput,
    InvalidQuantity,
    ItemNotFound,
    NotAuthenticated,
    ProductNotFound,
    TransientStoreError,
)
from trowool.db.base import MAX_INT_ID
from trowool.models.cart import COLOR_MAX_LENGTH, CartItem
from trowool.models.product import Product
from trowool.services import catalog

logger = logging.getLogger(__name__)


def _is_positive_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def _is_db_id(value) -> bool:
    return _is_positive_int(value) and value <= MAX_INT_ID


def _require_user(user_id) -> None:
    if not _is_db_id(user_id):
        raise NotAuthenticated()


def _validate_quantity(quantity, upper: int | None = None) -> None:
    if upper is not None:
        if not _is_positive_int(quantity) or quantity > upper:
            raise InvalidQuantity(f"Quantity must be an integer between 1 and {upper}")
    elif not _is_positive_int(quantity):
        raise InvalidQuantity()


def _validate_color(color) -> str:
    if not isinstance(color, str) or not color.strip():
        raise InvalidInput("color", "Color must be a non-empty string")
    color = color.strip()
    if len(color) > COLOR_MAX_LENGTH:
        raise InvalidInput("color", f"Color must be at most {COLOR_MAX_LENGTH} characters")
    return color


def _set_lock_timeout(db: Session) -> None:
    # Только Postgres: ожидание блокировки дольше таймаута даёт ошибку вместо зависания
    if db.get_bind().dialect.name == "postgresql":
        db.execute(text(f"SET LOCAL lock_timeout = {int(settings.DB_LOCK_TIMEOUT_MS)}"))


@contextmanager
def _transaction(db: Session, operation: str, commit: bool = True, **context):
    """
    Обёртка над транзакцией операции корзины.
    Любая ошибка откатывает транзакцию целиком; ошибки соединения и блокировок
    превращаются в TransientStoreError.
    """
    details = ", ".join(f"{key}={value}" for key, value in context.items())
    try:
        if commit:
            _set_lock_timeout(db)
        yield
        if commit:
            db.commit()
    except CartError as e:
        db.rollback()
        logger.info(f"{operation} rejected ({details}): {e.message}")
        raise
    except (OperationalError, IntegrityError) as e:
        db.rollback()
        logger.warning(f"Transient store error in {operation} ({details}): {e}")
        raise TransientStoreError() from e
    except DBAPIError as e:
        db.rollback()
        if e.connection_invalidated:
            logger.warning(f"Connection lost in {operation} ({details}): {e}")
            raise TransientStoreError() from e
        logger.error(f"Database error in {operation} ({details})", exc_info=True)
        raise
    except SQLAlchemyError:
        db.rollback()
        logger.error(f"Database error in {operation} ({details})", exc_info=True)
        raise


def _line_query(db: Session):
    return db.query(CartItem).options(
        joinedload(CartItem.product).selectinload(Product.images)
    ).populate_existing()


def _load_line(db: Session, item_id: int) -> CartItem:
    return _line_query(db).filter(CartItem.id == item_id).one()


def line_lock_query(db: Session, *criteria):
    """SELECT ... FOR UPDATE по строкам корзины."""
    return (
        db.query(CartItem)
        .filter(*criteria)
        .with_for_update()
        .populate_existing()
    )


def _lock_line(db: Session, *criteria) -> CartItem | None:
    return line_lock_query(db, *criteria).first()


def get_cart(db: Session, user_id: int) -> list[CartItem]:
    """Строки корзины с данными товара, сначала самые новые."""
    _require_user(user_id)
    with _transaction(db, "get_cart", commit=False, user_id=user_id):
        return (
            _line_query(db)
            .filter(CartItem.user_id == user_id)
            .order_by(CartItem.created_at.desc(), CartItem.id.desc())
            .all()
        )


def add_to_cart(db: Session, user_id: int, product_id: int, color: str, quantity: int = 1) -> CartItem:
    """
    Добавляет товар в корзину или увеличивает количество существующей строки
    с тем же товаром и цветом. Итоговое количество не может превысить остаток.
    Строка с данными товара читается в той же транзакции, до commit.
    """
    _require_user(user_id)
    if not _is_db_id(product_id):
        raise InvalidInput("product_id", f"Product id must be an integer between 1 and {MAX_INT_ID}")
    color = _validate_color(color)
    _validate_quantity(quantity, upper=settings.CART_MAX_QUANTITY)

    with _transaction(db, "add_to_cart", user_id=user_id, product_id=product_id, color=color):
        product = catalog.lock_product(db, product_id)
        if product is None:
            raise ProductNotFound(product_id)

        item = _lock_line(
            db,
            CartItem.user_id == user_id,
            CartItem.product_id == product_id,
            CartItem.color == color,
        )
        if item is not None:
            new_quantity = item.quantity + quantity
            if new_quantity > product.stock:
                raise InsufficientStock(new_quantity, product.stock)
            item.quantity = new_quantity
        else:
            if quantity > product.stock:
                raise InsufficientStock(quantity, product.stock)
            item = CartItem(user_id=user_id, product_id=product_id, color=color, quantity=quantity)
            db.add(item)
        db.flush()
        line = _load_line(db, item.id)

    logger.info(f"Added product {product_id} ({color}) x{quantity} to cart of user {user_id}")
    return line


def update_quantity(db: Session, user_id: int, item_id: int, quantity: int) -> CartItem:
    """Устанавливает количество строки корзины, проверяя остаток товара."""
    _require_user(user_id)
    _validate_quantity(quantity)
    # id вне диапазона столбца не может принадлежать ни одной строке
    if not _is_db_id(item_id):
        raise ItemNotFound(item_id)

    with _transaction(db, "update_quantity", user_id=user_id, item_id=item_id):
        product_id = (
            db.query(CartItem.product_id)
            .filter(CartItem.id == item_id, CartItem.user_id == user_id)
            .scalar()
        )
        if product_id is None:
            raise ItemNotFound(item_id)

        product = catalog.lock_product(db, product_id)
        item = _lock_line(db, CartItem.id == item_id, CartItem.user_id == user_id)
        # строку могли удалить, пока мы ждали блокировку товара
        if product is None or item is None:
            raise ItemNotFound(item_id)

        if quantity > product.stock:
            raise InsufficientStock(quantity, product.stock)
        item.quantity = quantity
        db.flush()
        line = _load_line(db, item_id)

    logger.info(f"Updated cart item {item_id} of user {user_id} to x{quantity}")
    return line


def remove_from_cart(db: Session, user_id: int, item_id: int) -> None:
    _require_user(user_id)
    if not _is_db_id(item_id):
        raise ItemNotFound(item_id)
    with _transaction(db, "remove_from_cart", user_id=user_id, item_id=item_id):
        deleted = (
            db.query(CartItem)
            .filter(CartItem.id == item_id, CartItem.user_id == user_id)
            .delete(synchronize_session="fetch")
        )
        if deleted == 0:
            raise ItemNotFound(item_id)
    logger.info(f"Removed cart item {item_id} of user {user_id}")


def clear_cart(db: Session, user_id: int) -> None:
    """Удаляет все строки корзины пользователя. Пустая корзина не считается ошибкой."""
    _require_user(user_id)
    with _transaction(db, "clear_cart", user_id=user_id):
        deleted = (
            db.query(CartItem)
            .filter(CartItem.user_id == user_id)
            .delete(synchronize_session="fetch")
        )
    logger.info(f"Cleared cart of user {user_id} ({deleted} items)")
