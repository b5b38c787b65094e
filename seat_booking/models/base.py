"""Declarative base for SQLAlchemy models."""

from sqlalchemy.orm import DeclarativeBase
from ulid import ULID


class Base(DeclarativeBase):
    """Base model class."""

    pass


def new_id() -> str:
    """Generate an opaque, time-sortable row identifier."""
    return str(ULID())
