"""ORM model for workloads owned by a user."""

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, String, Text, func

from workload_tracker.models.base import Base

WORKLOAD_TYPES = ("Rutin", "Proyek", "Tambahan", "Lainnya")
WORKLOAD_STATUSES = ("New", "In Progress", "Completed", "On Hold", "Cancelled")
DEFAULT_STATUS = "New"


class Workload(Base):
    """
    One unit of work assigned to exactly one user.

    Rows are removed together with their owner (ON DELETE CASCADE); the force
    delete path also removes them explicitly so MySQL and SQLite behave alike.
    """

    __tablename__ = "workloads"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = Column(String(100), nullable=False)
    type = Column(String(50), nullable=True)
    description = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default=DEFAULT_STATUS, index=True)
    received_date = Column(Date, nullable=True)
    function = Column(String(100), nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now(), index=True)
    updated_at = Column(DateTime, nullable=True, onupdate=func.now())
