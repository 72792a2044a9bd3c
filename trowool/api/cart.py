# trowool/api/cart.py
# Роуты корзины. Пользователь берётся из JWT, вся логика в trowool/services/cart.py.
# Бизнес-ошибки (CartError) превращаются в JSON обработчиком в trowool/main.py.
import logging
import time

from fastapi import APIRouter, Depends, Path, Response, status
from sqlalchemy.orm import Session

from trowool.core.config import settings
from trowool.core.errors import TransientStoreError
from trowool.core.security import get_current_user
from trowool.db.base import MAX_INT_ID
from trowool.db.session import get_db
from trowool.models.user import User
from trowool.schemas.cart import CartItemCreate, CartItemOut, CartItemUpdate
from trowool.services import cart as cart_service

logger = logging.getLogger(__name__)

router = APIRouter()

# id строки корзины в пути; значения вне диапазона Integer отклоняются до запроса к БД
ItemId = Path(ge=1, le=MAX_INT_ID)


def run_with_retry(func, *args, retries: int | None = None, delay: float | None = None):
    """
    Выполняет операцию корзины, повторяя её при TransientStoreError
    с экспоненциальной задержкой. Бизнес-ошибки не повторяются.

    Args:
        func: Операция из trowool.services.cart
        retries: Количество попыток (по умолчанию settings.DB_RETRY_ATTEMPTS)
        delay: Начальная задержка в секундах (по умолчанию settings.DB_RETRY_DELAY)
    """
    retries = retries or settings.DB_RETRY_ATTEMPTS
    delay = settings.DB_RETRY_DELAY if delay is None else delay
    for attempt in range(1, retries + 1):
        try:
            return func(*args)
        except TransientStoreError:
            if attempt == retries:
                logger.error(f"❌ {func.__name__} failed after {retries} attempts")
                raise
            wait = delay * 2 ** (attempt - 1)
            logger.warning(f"⏳ {func.__name__} attempt {attempt}/{retries} failed, retrying in {wait:.2f}s")
            time.sleep(wait)


@router.get("", response_model=list[CartItemOut])
def get_cart(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return run_with_retry(cart_service.get_cart, db, current_user.id)


@router.post("", response_model=CartItemOut, status_code=status.HTTP_201_CREATED)
def add_item(
    item: CartItemCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return run_with_retry(
        cart_service.add_to_cart, db, current_user.id, item.product_id, item.color, item.quantity
    )


@router.put("/{item_id}", response_model=CartItemOut)
def update_item(
    item: CartItemUpdate,
    item_id: int = ItemId,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return run_with_retry(cart_service.update_quantity, db, current_user.id, item_id, item.quantity)


@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_item(item_id: int = ItemId, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    run_with_retry(cart_service.remove_from_cart, db, current_user.id, item_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
def clear_cart(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    run_with_retry(cart_service.clear_cart, db, current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
