"""
Ticket cancellation.

Removes every commercial operation ticket bought with a given email, for
refunds handled outside the import.
"""

import logging
from typing import List

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from rental_admin.app.models.ticket import CommercialOperationTicket

logger = logging.getLogger("rental_admin.tickets")


async def find_tickets_by_email(db: AsyncSession, email: str) -> List[CommercialOperationTicket]:
    result = await db.execute(
        select(CommercialOperationTicket)
        .where(CommercialOperationTicket.email == email)
        .order_by(CommercialOperationTicket.ticket_number)
    )
    return list(result.scalars().all())


async def cancel_tickets_by_email(db: AsyncSession, email: str) -> List[CommercialOperationTicket]:
    """
    Delete all tickets registered to `email`.

    Ticket numbers of deleted tickets are not reused by later imports unless
    they were the highest numbers issued.

    Args:
        db: Database session
        email: Exact email stored on the tickets

    Returns:
        The deleted tickets (detached, attributes still readable)
    """
    tickets = await find_tickets_by_email(db, email)
    if not tickets:
        logger.info("No tickets found for %s", email)
        return []

    try:
        for ticket in tickets:
            await db.delete(ticket)
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.error("Error cancelling tickets for %s: %s", email, exc)
        raise

    logger.info(
        "Cancelled %d ticket(s) for %s: %s",
        len(tickets), email, ", ".join(f"#{t.ticket_number:04d}" for t in tickets)
    )
    return tickets
