"""
Shared fixtures.

Every test gets its own SQLite file database. The engine is built with
create_db_engine, so transactions start with BEGIN IMMEDIATE exactly as in
local development. A session that has read anything holds the write lock
until it commits or closes; fixtures therefore seed data in short-lived
sessions and hand out plain ids.
"""
import itertools
import os
import tempfile
from decimal import Decimal

# Настройки читаются при импорте trowool, поэтому окружение задаём заранее
os.environ["DATABASE_URL"] = f"sqlite:///{tempfile.mkdtemp()}/trowool_default.db"
os.environ["ENVIRONMENT"] = "testing"
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from trowool.core.security import create_access_token
from trowool.db.base import Base
from trowool.db.session import create_db_engine, get_db
from trowool.main import app
from trowool.models.cart import CartItem
from trowool.models.product import Category, Product, ProductImage
from trowool.models.user import User


@pytest.fixture
def engine(tmp_path):
    db_engine = create_db_engine(f"sqlite:///{tmp_path}/test.db")
    Base.metadata.create_all(bind=db_engine)
    yield db_engine
    db_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def create_user(session_factory):
    counter = itertools.count(1)

    def _create(email: str | None = None) -> int:
        with session_factory() as session:
            user = User(email=email or f"knitter{next(counter)}@example.com", full_name="Test Knitter")
            session.add(user)
            session.commit()
            return user.id

    return _create


@pytest.fixture
def create_product(session_factory):
    def _create(stock: int = 5, name: str = "Троицкая пряжа Кроха", price: str = "145.00",
                images: tuple = ("/uploads/kroha-side.jpg", "/uploads/kroha-main.jpg")) -> int:
        with session_factory() as session:
            category = session.query(Category).filter_by(name="Троицкая пряжа").first()
            if category is None:
                category = Category(name="Троицкая пряжа")
            product = Product(
                name=name,
                category=category,
                price=Decimal(price),
                stock=stock,
                colors=["red", "blue"],
            )
            # последнее изображение главное
            for index, url in enumerate(images):
                product.images.append(ProductImage(image_url=url, is_main=index == len(images) - 1))
            session.add(product)
            session.commit()
            return product.id

    return _create


@pytest.fixture
def user_id(create_user):
    return create_user()


@pytest.fixture
def other_user_id(create_user):
    return create_user()


@pytest.fixture
def product_id(create_product):
    return create_product(stock=5)


@pytest.fixture
def cart_lines(session_factory):
    """Читает строки корзины пользователя в отдельной сессии: [(product_id, color, quantity)]."""
    def _read(user_id: int) -> list[tuple]:
        with session_factory() as session:
            rows = (
                session.query(CartItem.product_id, CartItem.color, CartItem.quantity)
                .filter(CartItem.user_id == user_id)
                .order_by(CartItem.id)
                .all()
            )
            return [tuple(row) for row in rows]

    return _read


@pytest.fixture
def client(session_factory):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(user_id):
    return {"Authorization": f"Bearer {create_access_token(subject=str(user_id))}"}


@pytest.fixture
def other_auth_headers(other_user_id):
    return {"Authorization": f"Bearer {create_access_token(subject=str(other_user_id))}"}
