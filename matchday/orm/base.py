"""
matchday/orm/base.py
Declarative base and shared column types for all ORM models
"""
from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, Integer
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.engine import Dialect
from sqlalchemy.orm import declarative_base
from sqlalchemy.types import TypeDecorator

Base = declarative_base()


class PortableJSON(TypeDecorator):
    """
    JSONB on PostgreSQL, plain JSON on SQLite and everything else.
    """
    impl = JSON
    cache_ok = True

    def load_dialect_impl(self, dialect: Dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(JSONB())
        return dialect.type_descriptor(JSON())


class BaseModel(Base):
    """
    Abstract model with surrogate id and audit timestamps.
    """
    __abstract__ = True

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)

    created_at = Column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
        comment="Timestamp when record was created"
    )

    updated_at = Column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
        comment="Timestamp when record was last updated"
    )
