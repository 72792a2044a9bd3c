# trowool/db/session.py
# Инициализация SQLAlchemy engine и фабрики сессий.
# Поддерживает как Postgres, так и SQLite (для тестов/локального использования).

import logging

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from trowool.core.config import settings

logger = logging.getLogger(__name__)

DATABASE_URL = settings.DATABASE_URL


def _enable_sqlite_locking(engine: Engine) -> None:
    """
    SQLite не поддерживает SELECT ... FOR UPDATE. Вместо этого каждая
    транзакция открывается через BEGIN IMMEDIATE и сразу берёт блокировку
    записи на всю базу, так что транзакции корзины выполняются по очереди.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Отключаем собственный BEGIN драйвера pysqlite
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_db_engine(url: str) -> Engine:
    """Создаёт engine; для sqlite дополнительно настраивает блокировки."""
    if url.startswith("sqlite"):
        # Для sqlite требуется connect_args; timeout задаёт ожидание блокировки в секундах
        connect_args = {"check_same_thread": False, "timeout": settings.SQLITE_BUSY_TIMEOUT}
    else:
        connect_args = {}

    # pool_pre_ping полезен для долгоживущих соединений с Postgres
    db_engine = create_engine(url, connect_args=connect_args, pool_pre_ping=True)
    if url.startswith("sqlite"):
        _enable_sqlite_locking(db_engine)
    return db_engine


engine = create_db_engine(DATABASE_URL)

# expire_on_commit=False: строка корзины, прочитанная до commit, отдаётся клиенту
# без повторного запроса к БД после commit
SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def get_db():
    """Зависимость для получения сессии БД в эндпоинтах."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def check_connection(db_engine: Engine | None = None) -> bool:
    """Проверяет подключение к БД запросом SELECT 1."""
    try:
        with (db_engine or engine).connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError as e:
        logger.error(f"Database connection error: {e}")
        return False
