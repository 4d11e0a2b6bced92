"""ORM model for application users (employees, auth and RBAC)."""

from sqlalchemy import Column, DateTime, Integer, String, func

from workload_tracker.models.base import Base

ROLE_ADMIN = "Admin"
ROLE_USER = "User"
ROLES = (ROLE_ADMIN, ROLE_USER)


class User(Base):
    """
    Employee account for JWT authentication and role-based access control.

    role: 'Admin' or 'User'. password_hash holds a bcrypt hash (salt embedded)
    and is never selected by the public read paths.
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(50), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    name = Column(String(100), nullable=False)
    badge_number = Column(String(20), nullable=True)
    rank = Column(String(20), nullable=True)
    position = Column(String(100), nullable=True)
    role = Column(String(16), nullable=False, default=ROLE_USER, index=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=True, onupdate=func.now())
