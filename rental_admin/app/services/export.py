"""
CSV export of reservations.
"""

import csv
import io
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rental_admin.app.models.reservation import Reservation

EXPORT_COLUMNS = ["id", "start_at", "end_at", "status", "total_amount", "currency", "source"]


def reservations_to_csv(reservations: Iterable[Reservation]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(EXPORT_COLUMNS)
    for r in reservations:
        writer.writerow([
            r.id,
            r.start_at.isoformat(),
            r.end_at.isoformat(),
            getattr(r.status, "value", r.status),
            r.total_amount,
            r.currency,
            r.source or "",
        ])
    return buffer.getvalue()


async def export_reservations_csv(db: AsyncSession) -> str:
    """All reservations, latest start first."""
    result = await db.execute(select(Reservation).order_by(Reservation.start_at.desc()))
    return reservations_to_csv(result.scalars().all())
