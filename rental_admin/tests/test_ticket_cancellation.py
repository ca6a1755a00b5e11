"""
Ticket cancellation tests.
"""

from datetime import datetime, timezone

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from rental_admin.app.models.ticket import CommercialOperationTicket
from rental_admin.app.services.ticket_cancellation import (
    cancel_tickets_by_email,
    find_tickets_by_email,
)
from rental_admin.scripts import cancel_tickets


@pytest.fixture
async def tickets(db_session):
    rows = [
        ("pi_a-0", 1, "anna@example.com", "pi_a"),
        ("pi_a-1", 2, "anna@example.com", "pi_a"),
        ("pi_b-0", 3, "luca@example.com", "pi_b"),
        ("pi_c-0", 4, "anna@example.com", "pi_c"),
    ]
    for uuid, number, email, charge_id in rows:
        db_session.add(CommercialOperationTicket(
            uuid=uuid,
            ticket_number=number,
            email=email,
            full_name=email.split("@")[0],
            payment_intent_id=charge_id,
            amount_paid=2000,
            purchase_date=datetime(2025, 11, 3, 21, 18, tzinfo=timezone.utc),
        ))
    await db_session.commit()


async def remaining_numbers(db):
    result = await db.execute(
        select(CommercialOperationTicket.ticket_number).order_by(CommercialOperationTicket.ticket_number)
    )
    return list(result.scalars().all())


@pytest.mark.asyncio
async def test_find_tickets_by_email(db_session, tickets):
    found = await find_tickets_by_email(db_session, "anna@example.com")
    assert [t.ticket_number for t in found] == [1, 2, 4]


@pytest.mark.asyncio
async def test_cancel_removes_only_that_customer(db_session, tickets):
    cancelled = await cancel_tickets_by_email(db_session, "anna@example.com")

    assert [t.ticket_number for t in cancelled] == [1, 2, 4]
    assert cancelled[0].full_name == "anna"
    assert await remaining_numbers(db_session) == [3]


@pytest.mark.asyncio
async def test_cancel_unknown_email_is_a_noop(db_session, tickets):
    assert await cancel_tickets_by_email(db_session, "nobody@example.com") == []
    assert await remaining_numbers(db_session) == [1, 2, 3, 4]


@pytest.mark.asyncio
async def test_cancel_failure_rolls_back_and_raises(db_session, tickets, mocker):
    mocker.patch.object(
        db_session, "commit", side_effect=OperationalError("DELETE", {}, Exception("locked"))
    )

    with pytest.raises(OperationalError):
        await cancel_tickets_by_email(db_session, "anna@example.com")

    result = await db_session.execute(select(func.count(CommercialOperationTicket.id)))
    assert result.scalar() == 4


# Command line

@pytest.mark.asyncio
async def test_cli_lists_cancelled_tickets(mocker, capsys, db_session, tickets):
    mocker.patch.object(cancel_tickets, "AsyncSessionLocal", return_value=db_session)

    assert await cancel_tickets.run("luca@example.com") == 0

    out = capsys.readouterr().out
    assert "Cancelled 1 ticket(s) for luca@example.com" in out
    assert "Ticket #0003 (luca)" in out
    assert "Payment ID: pi_b" in out


@pytest.mark.asyncio
async def test_cli_reports_failure(mocker, capsys):
    mocker.patch.object(cancel_tickets, "AsyncSessionLocal")
    mocker.patch.object(
        cancel_tickets, "cancel_tickets_by_email", side_effect=OperationalError("DELETE", {}, Exception("down"))
    )

    assert await cancel_tickets.run("anna@example.com") == 1
    assert "Error cancelling tickets" in capsys.readouterr().out


def test_cli_requires_email(mocker):
    mocker.patch("sys.argv", ["cancel_tickets"])
    with pytest.raises(SystemExit) as exc_info:
        cancel_tickets.main()
    assert exc_info.value.code == 2
