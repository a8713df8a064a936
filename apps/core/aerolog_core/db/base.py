"""Declarative base for all models."""

from sqlalchemy import Enum
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def enum_type(enum_cls) -> Enum:
    """String-backed enum column type storing member values."""
    return Enum(
        enum_cls,
        native_enum=False,
        length=32,
        values_callable=lambda members: [m.value for m in members],
    )
