# trowool/main.py
# Точка входа FastAPI. Создание таблиц выполняется в событии startup с обработкой ошибок.

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from trowool.db.session import engine, check_connection
from trowool.db.base import Base
from trowool.core.config import settings
from trowool.core.errors import CartError
from trowool.api import auth as auth_router
from trowool.api import cart as cart_router

# Импорт моделей, чтобы SQLAlchemy видел их определения
import trowool.models.user
import trowool.models.product
import trowool.models.cart

# Настройка логирования
logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


def try_create_tables(retries: int = 5, delay: int = 2) -> bool:
    """
    Пытаемся создать таблицы с повторными попытками.
    Если БД недоступна, логируем ошибку и пробуем снова.

    Args:
        retries: Количество попыток подключения
        delay: Задержка между попытками в секундах

    Returns:
        True если таблицы созданы/существуют, False если все попытки исчерпаны
    """
    for attempt in range(1, retries + 1):
        try:
            logger.info(f"Попытка создания таблиц ({attempt}/{retries})...")
            Base.metadata.create_all(bind=engine)
            logger.info("✅ Database tables created (or already exist).")
            return True
        except Exception as e:
            logger.warning(f"❌ Attempt {attempt}/{retries} failed to create tables: {e}")
            if attempt < retries:
                logger.info(f"⏳ Waiting {delay}s before retry...")
                time.sleep(delay)
    logger.error(f"❌ Could not create tables after {retries} retries.")
    return False


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Запуск: создание таблиц. Остановка: закрытие пула соединений."""
    logger.info("🚀 FastAPI starting up...")
    if not try_create_tables(retries=5, delay=2):
        logger.error("⚠️ Failed to create database tables. Application may not work correctly.")
        if settings.is_production:
            raise RuntimeError("Cannot start application: database tables creation failed")

    yield

    logger.info("🛑 FastAPI shutting down...")
    engine.dispose()
    logger.info("✅ Database connection closed")


app = FastAPI(
    title="Trowool API",
    description="API магазина пряжи: авторизация и корзина",
    version="1.0.0",
    lifespan=lifespan
)

# В development разрешаем локальный фронтенд, в продакшене только CORS_ORIGINS
if settings.ENVIRONMENT == "development":
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173", "http://localhost:5174"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
else:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization"],
    )

app.include_router(auth_router.router, prefix="/api/auth", tags=["auth"])
app.include_router(cart_router.router, prefix="/api/cart", tags=["cart"])


@app.get("/", tags=["health"])
async def root():
    """Базовый health check."""
    return {
        "status": "ok",
        "service": "Trowool API",
        "environment": settings.ENVIRONMENT
    }


@app.get("/health", tags=["health"])
def health():
    """Детальный health check с проверкой соединения с БД."""
    connected = check_connection()
    return {
        "status": "healthy" if connected else "degraded",
        "database": "connected" if connected else "unavailable",
        "version": "1.0.0"
    }


@app.exception_handler(CartError)
async def cart_error_handler(request: Request, exc: CartError):
    """Бизнес-ошибки корзины: статус и тело берутся из самой ошибки."""
    return JSONResponse(status_code=exc.status_code, content=exc.payload(), headers=exc.headers())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Ошибки валидации запроса отдаём как 400 с именем поля."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = str(first.get("loc", ["body"])[-1])
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": first.get("msg", "Invalid input"), "field": field},
    )


# Глобальный обработчик исключений
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Глобальный обработчик ошибок."""
    logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc}", exc_info=True)
    content = {"status": "error", "message": "Internal server error"}
    if settings.ENVIRONMENT == "development":
        content["detail"] = str(exc)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=content)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "trowool.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.ENVIRONMENT == "development",
        log_level=settings.LOG_LEVEL.lower()
    )
