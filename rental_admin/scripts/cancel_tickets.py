"""
Cancel every ticket bought with an email address.

Usage:
    python -m rental_admin.scripts.cancel_tickets customer@example.com
"""

import asyncio
import sys

from sqlalchemy.exc import SQLAlchemyError

from rental_admin.app.db.session import AsyncSessionLocal
from rental_admin.app.services.ticket_cancellation import cancel_tickets_by_email


def describe(ticket) -> str:
    purchased = ticket.purchase_date.strftime("%d/%m/%Y %H:%M") if ticket.purchase_date else "N/A"
    return (
        f"  - Ticket #{ticket.ticket_number:04d} ({ticket.full_name or '-'})\n"
        f"    Purchase Date: {purchased}\n"
        f"    Payment ID: {ticket.payment_intent_id}"
    )


async def run(email: str) -> int:
    print(f"🔍 Searching for tickets with email: {email}")

    async with AsyncSessionLocal() as db:
        try:
            cancelled = await cancel_tickets_by_email(db, email)
        except SQLAlchemyError as exc:
            print(f"❌ Error cancelling tickets: {exc}")
            return 1

    if not cancelled:
        print("ℹ️  No tickets found for this email")
        return 0

    print(f"✅ Cancelled {len(cancelled)} ticket(s) for {email}:")
    for ticket in cancelled:
        print(describe(ticket))
    return 0


def main() -> None:
    if len(sys.argv) != 2:
        print("Usage: python -m rental_admin.scripts.cancel_tickets <email>")
        sys.exit(2)

    sys.exit(asyncio.run(run(sys.argv[1].strip())))


if __name__ == "__main__":
    main()
