"""Базовый класс ORM-моделей турниров, рейтингов и достижений."""

from sqlalchemy import MetaData
from sqlalchemy.orm import DeclarativeBase

# Имена индексов совпадают с теми, что создают миграции alembic.
NAMING_CONVENTION = {"ix": "ix_%(table_name)s_%(column_0_name)s"}


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=NAMING_CONVENTION)
