"""
Stripe ticket import.

Turns a Stripe payments CSV export into commercial operation tickets with
sequential ticket numbers continuing from the highest number already stored.
"""

import csv
import io
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from rental_admin.app.models.ticket import CommercialOperationTicket

logger = logging.getLogger("rental_admin.tickets")

TICKET_PRICE_CENTS = 2000
BATCH_SIZE = 50
TICKET_PURCHASE_TYPES = ("commercial-operation-ticket", "lottery-ticket")

# Stripe export column names
COL_ID = "id"
COL_STATUS = "Status"
COL_AMOUNT = "Amount"
COL_CURRENCY = "Currency"
COL_CREATED = "Created date (UTC)"
COL_CUSTOMER_EMAIL = "Customer Email"
COL_META_EMAIL = "email (metadata)"
COL_META_PURCHASE_TYPE = "purchaseType (metadata)"
COL_META_QUANTITY = "tickets_qty (metadata)"


@dataclass
class ImportSummary:
    rows_read: int = 0
    purchases_selected: int = 0
    tickets_prepared: int = 0
    tickets_inserted: int = 0
    charges_skipped: int = 0
    failed_batches: List[int] = field(default_factory=list)
    first_ticket_number: Optional[int] = None
    last_ticket_number: Optional[int] = None


def parse_amount(value: str) -> int:
    """Stripe amount like "20,00" or "1.00" in cents."""
    cleaned = (value or "").replace('"', "").strip().replace(",", ".")
    if not cleaned:
        return 0
    return round(float(cleaned) * 100)


def parse_purchase_date(value: str) -> Optional[datetime]:
    """Parse "2025-11-03 21:18:51" (UTC)."""
    if not value:
        return None
    return datetime.fromisoformat(value.strip()).replace(tzinfo=timezone.utc)


def read_rows(csv_text: str) -> List[Dict[str, str]]:
    reader = csv.DictReader(io.StringIO(csv_text.strip()))
    return [{key: (val or "").strip() for key, val in row.items() if key} for row in reader]


def is_ticket_purchase(row: Dict[str, str]) -> bool:
    """Paid charges that are ticket purchases, or exactly one ticket's price."""
    purchase_type = row.get(COL_META_PURCHASE_TYPE) or row.get(COL_META_EMAIL)
    return row.get(COL_STATUS) == "Paid" and (
        purchase_type in TICKET_PURCHASE_TYPES
        or parse_amount(row.get(COL_AMOUNT, "")) == TICKET_PRICE_CENTS
    )


def ticket_quantity(row: Dict[str, str]) -> int:
    """Explicit quantity metadata wins, otherwise one ticket per 20 EUR paid."""
    explicit = row.get(COL_META_QUANTITY)
    if explicit:
        try:
            quantity = int(explicit)
        except ValueError:
            quantity = 0
        if quantity > 0:
            return quantity
        logger.warning(
            "Charge %s has invalid ticket quantity %r, deriving it from the amount",
            row.get(COL_ID), explicit
        )
    amount = parse_amount(row.get(COL_AMOUNT, ""))
    if amount >= TICKET_PRICE_CENTS:
        return amount // TICKET_PRICE_CENTS
    return 1


def plan_tickets(
    rows: Iterable[Dict[str, str]],
    next_ticket_number: int,
    already_imported: Iterable[str] = ()
) -> List[Dict]:
    """
    Expand purchases into one ticket per unit, numbered sequentially.

    Ticket uuids already stored are skipped one by one, so re-running an
    import after a failed batch only issues numbers for the missing tickets.
    """
    imported = set(already_imported)
    tickets = []
    now = datetime.now(timezone.utc)

    for row in rows:
        charge_id = row[COL_ID]
        email = row.get(COL_META_EMAIL) or row.get(COL_CUSTOMER_EMAIL) or ""
        purchase_date = parse_purchase_date(row.get(COL_CREATED, ""))

        for i in range(ticket_quantity(row)):
            uuid = f"{charge_id}-{i}"
            if uuid in imported:
                continue
            tickets.append({
                "uuid": uuid,
                "ticket_number": next_ticket_number,
                "user_id": None,
                "email": email,
                "full_name": email.split("@")[0],
                "payment_intent_id": charge_id,
                "amount_paid": TICKET_PRICE_CENTS,
                "currency": "eur",
                "purchase_date": purchase_date,
                "quantity": 1,
                "created_at": now,
                "updated_at": now,
            })
            next_ticket_number += 1

    return tickets


async def get_next_ticket_number(db: AsyncSession) -> int:
    result = await db.execute(select(func.max(CommercialOperationTicket.ticket_number)))
    highest = result.scalar()
    return (highest or 0) + 1


async def get_imported_uuids(db: AsyncSession, charge_ids: List[str]) -> List[str]:
    if not charge_ids:
        return []
    result = await db.execute(
        select(CommercialOperationTicket.uuid).where(
            CommercialOperationTicket.payment_intent_id.in_(charge_ids)
        )
    )
    return list(result.scalars().all())


async def import_tickets(db: AsyncSession, csv_text: str) -> ImportSummary:
    """
    Import ticket purchases from a Stripe CSV export.

    Tickets are inserted in batches of 50. A failing batch is rolled back,
    logged, and the import continues with the next one.

    Args:
        db: Database session
        csv_text: Contents of the Stripe export

    Returns:
        ImportSummary with counts and the ticket number range issued
    """
    summary = ImportSummary()
    rows = read_rows(csv_text)
    summary.rows_read = len(rows)

    purchases = [row for row in rows if is_ticket_purchase(row)]
    summary.purchases_selected = len(purchases)

    already_imported = await get_imported_uuids(db, [row[COL_ID] for row in purchases])

    next_number = await get_next_ticket_number(db)
    tickets = plan_tickets(purchases, next_number, already_imported)
    summary.tickets_prepared = len(tickets)

    # A charge counts as skipped only when every one of its tickets is stored
    planned_charges = {ticket["payment_intent_id"] for ticket in tickets}
    summary.charges_skipped = sum(1 for row in purchases if row[COL_ID] not in planned_charges)
    logger.info(
        "Prepared %d tickets from %d purchases, numbering from %d",
        len(tickets), len(purchases), next_number
    )

    for start in range(0, len(tickets), BATCH_SIZE):
        batch = tickets[start:start + BATCH_SIZE]
        batch_no = start // BATCH_SIZE + 1
        try:
            db.add_all([CommercialOperationTicket(**ticket) for ticket in batch])
            await db.commit()
        except SQLAlchemyError as exc:
            await db.rollback()
            summary.failed_batches.append(batch_no)
            logger.error("Error inserting ticket batch %d: %s", batch_no, exc)
            continue

        summary.tickets_inserted += len(batch)
        if summary.first_ticket_number is None:
            summary.first_ticket_number = batch[0]["ticket_number"]
        summary.last_ticket_number = batch[-1]["ticket_number"]

    return summary
