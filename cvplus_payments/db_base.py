"""
Declarative base shared by every table.

Kept free of model imports so models, repositories and tests can all
import it without cycles.
"""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass
