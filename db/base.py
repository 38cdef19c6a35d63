"""
db/base.py

Declarative base for the forecast store.
"""

from typing import Any

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """
    Project-wide declarative base.
    Every ORM model registers its table on ``Base.metadata``.
    """

    type_annotation_map: dict[type, Any] = {}
