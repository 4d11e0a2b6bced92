"""SQLAlchemy declarative Base shared by the users and workloads tables."""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Declarative base for all ORM models; Base.metadata drives schema creation."""

    pass
