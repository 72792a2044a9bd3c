# trowool/core/errors.py
# Типизированные ошибки корзины. Каждая знает свой HTTP-статус и тело ответа,
# обработчик в trowool/main.py превращает их в JSON.


class CartError(Exception):
    """Базовая бизнес-ошибка корзины."""

    status_code = 400
    message = "Cart request failed"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)
        self.message = message or self.message

    def payload(self) -> dict:
        return {"error": self.message}

    def headers(self) -> dict | None:
        return None


class NotAuthenticated(CartError):
    status_code = 401
    message = "Authentication required"

    def headers(self) -> dict | None:
        return {"WWW-Authenticate": "Bearer"}


class InvalidInput(CartError):
    status_code = 400
    message = "Invalid input"

    def __init__(self, field: str, message: str | None = None):
        super().__init__(message)
        self.field = field

    def payload(self) -> dict:
        return {"error": self.message, "field": self.field}


class InvalidQuantity(InvalidInput):
    def __init__(self, message: str | None = None):
        super().__init__("quantity", message or "Quantity must be a positive integer")


class ProductNotFound(CartError):
    status_code = 404

    def __init__(self, product_id: int):
        super().__init__(f"Product {product_id} not found")
        self.product_id = product_id

    def payload(self) -> dict:
        return {"error": self.message, "product_id": self.product_id}


class ItemNotFound(CartError):
    status_code = 404

    def __init__(self, item_id: int):
        super().__init__(f"Cart item {item_id} not found")
        self.item_id = item_id

    def payload(self) -> dict:
        return {"error": self.message, "item_id": self.item_id}


class InsufficientStock(CartError):
    status_code = 409

    def __init__(self, requested: int, available: int):
        super().__init__(f"Not enough stock: requested {requested}, available {available}")
        self.requested = requested
        self.available = available

    def payload(self) -> dict:
        return {"error": self.message, "requested": self.requested, "available": self.available}


class TransientStoreError(CartError):
    """Потеря соединения, таймаут блокировки, deadlock. Запрос можно повторить."""

    status_code = 503
    message = "Storage temporarily unavailable, please retry"

    def headers(self) -> dict | None:
        return {"Retry-After": "1"}
