"""
Commercial operation ticket model.

Tickets carry a strictly increasing `ticket_number` assigned at import time.
"""

from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func
from rental_admin.app.db.session import Base


class CommercialOperationTicket(Base):
    __tablename__ = "commercial_operation_tickets"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # "{charge_id}-{n}", one per ticket bought in a charge
    uuid = Column(String(255), unique=True, nullable=False, index=True)
    ticket_number = Column(Integer, unique=True, nullable=False, index=True)

    user_id = Column(String(100), nullable=True)
    email = Column(String(255), nullable=True)
    full_name = Column(String(255), nullable=True)

    payment_intent_id = Column(String(255), nullable=False, index=True)
    amount_paid = Column(Integer, nullable=False)  # cents
    currency = Column(String(3), nullable=False, default="eur")
    quantity = Column(Integer, nullable=False, default=1)
    purchase_date = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<CommercialOperationTicket(number={self.ticket_number}, uuid='{self.uuid}')>"
