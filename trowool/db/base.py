# trowool/db/base.py
# Общая declarative база для SQLAlchemy.
# Модуль не импортирует модели, чтобы избежать циклических импортов;
# модели импортируют Base отсюда. Все модели регистрируются импортом
# в trowool/main.py и alembic/env.py.

from sqlalchemy.orm import declarative_base

# Столбцы Integer (id, внешние ключи) 32-битные в Postgres
MAX_INT_ID = 2**31 - 1

Base = declarative_base()
