"""SQLAlchemy declarative base shared by the registry tables."""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass
