"""
Import Stripe ticket purchases from a CSV export.

Usage:
    python -m rental_admin.scripts.import_stripe_tickets stripe-tickets.csv
"""

import asyncio
import sys
from pathlib import Path

from rental_admin.app.db.session import AsyncSessionLocal
from rental_admin.app.services.ticket_import import import_tickets


async def run(csv_path: Path) -> int:
    print("📖 Reading CSV file...")
    csv_text = csv_path.read_text(encoding="utf-8")

    async with AsyncSessionLocal() as db:
        summary = await import_tickets(db, csv_text)

    print(f"Found {summary.rows_read} transactions, {summary.purchases_selected} ticket purchases")
    if summary.charges_skipped:
        print(f"ℹ️  Skipped {summary.charges_skipped} charge(s) already imported")
    print(f"✓ Inserted {summary.tickets_inserted}/{summary.tickets_prepared} tickets")
    if summary.first_ticket_number is not None:
        print(f"   Ticket numbers #{summary.first_ticket_number:04d} - #{summary.last_ticket_number:04d}")
    if summary.failed_batches:
        print(f"❌ Failed batches: {', '.join(str(b) for b in summary.failed_batches)}")
        return 1
    return 0


def main() -> None:
    if len(sys.argv) != 2:
        print("Usage: python -m rental_admin.scripts.import_stripe_tickets <stripe-export.csv>")
        sys.exit(2)

    csv_path = Path(sys.argv[1])
    if not csv_path.exists():
        print(f"❌ File not found: {csv_path}")
        sys.exit(1)

    sys.exit(asyncio.run(run(csv_path)))


if __name__ == "__main__":
    main()
