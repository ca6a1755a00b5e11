"""
Audit Log Database Model.

Append-only record of admin changes to customers, vehicles and reservations.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from rental_admin.app.db.session import Base


class AuditLog(Base):
    """
    Audit log entry.

    `diff` holds the request body for creates and {"old": ..., "new": ...}
    for updates.
    """
    __tablename__ = "audit_log"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Who performed the action (None for the shared admin token)
    actor_id = Column(String(100), nullable=True, index=True)

    action = Column(String(50), nullable=False, index=True)
    entity_type = Column(String(50), nullable=False, index=True)
    entity_id = Column(String(100), nullable=True, index=True)

    diff = Column(JSON, nullable=True)

    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', entity={self.entity_type}:{self.entity_id})>"
