"""
Stripe ticket import tests.
"""

from datetime import datetime, timezone

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from rental_admin.app.models.ticket import CommercialOperationTicket
from rental_admin.app.services.ticket_import import (
    import_tickets,
    is_ticket_purchase,
    parse_amount,
    plan_tickets,
    read_rows,
    ticket_quantity,
)
from rental_admin.scripts import import_stripe_tickets

HEADER = (
    "id,Status,Amount,Currency,Created date (UTC),Customer Email,"
    "email (metadata),purchaseType (metadata),tickets_qty (metadata)"
)

STRIPE_EXPORT = "\n".join([
    HEADER,
    'ch_1,Paid,"20,00",eur,2025-11-03 21:18:51,,anna@example.com,commercial-operation-ticket,',
    'ch_2,Paid,"60,00",eur,2025-11-04 10:00:00,luca@example.com,,lottery-ticket,',
    'ch_3,Paid,"40,00",eur,2025-11-05 09:30:00,,sara@example.com,commercial-operation-ticket,2',
    'ch_4,Failed,"20,00",eur,2025-11-05 09:31:00,,fail@example.com,commercial-operation-ticket,',
    'ch_5,Paid,"50,00",eur,2025-11-06 12:00:00,,rent@example.com,rental,',
])


def single_charge_export(quantity):
    return "\n".join([
        HEADER,
        f'ch_bulk,Paid,"{quantity * 20},00",eur,2025-11-07 08:00:00,,bulk@example.com,lottery-ticket,{quantity}',
    ])


async def ticket_count(db):
    result = await db.execute(select(func.count(CommercialOperationTicket.id)))
    return result.scalar()


# Parsing

def test_parse_amount():
    assert parse_amount("20,00") == 2000
    assert parse_amount('"1,00"') == 100
    assert parse_amount("45.50") == 4550
    assert parse_amount("") == 0


def test_ticket_purchase_selection():
    rows = read_rows(STRIPE_EXPORT)
    assert [row["id"] for row in rows if is_ticket_purchase(row)] == ["ch_1", "ch_2", "ch_3"]


def test_paid_twenty_euro_without_metadata_is_a_ticket():
    row = {"id": "ch_x", "Status": "Paid", "Amount": "20,00"}
    assert is_ticket_purchase(row)
    assert ticket_quantity(row) == 1


def test_quantity_rules():
    assert ticket_quantity({"Amount": "60,00"}) == 3
    assert ticket_quantity({"Amount": "60,00", "tickets_qty (metadata)": "1"}) == 1
    assert ticket_quantity({"Amount": "5,00"}) == 1


def test_malformed_quantity_falls_back_to_amount():
    assert ticket_quantity({"id": "ch_x", "Amount": "60,00", "tickets_qty (metadata)": "three"}) == 3
    assert ticket_quantity({"id": "ch_x", "Amount": "40,00", "tickets_qty (metadata)": "0"}) == 2


def test_plan_tickets_fills_gaps_in_a_partially_imported_charge():
    rows = read_rows(single_charge_export(4))
    tickets = plan_tickets(rows, next_ticket_number=9, already_imported=["ch_bulk-0", "ch_bulk-1"])

    assert [t["uuid"] for t in tickets] == ["ch_bulk-2", "ch_bulk-3"]
    assert [t["ticket_number"] for t in tickets] == [9, 10]


def test_plan_tickets_numbers_sequentially():
    rows = [row for row in read_rows(STRIPE_EXPORT) if is_ticket_purchase(row)]
    tickets = plan_tickets(rows, next_ticket_number=10)

    assert [t["ticket_number"] for t in tickets] == [10, 11, 12, 13, 14, 15]
    assert [t["uuid"] for t in tickets[:4]] == ["ch_1-0", "ch_2-0", "ch_2-1", "ch_2-2"]
    assert tickets[0]["email"] == "anna@example.com"
    assert tickets[0]["full_name"] == "anna"
    # Falls back to the customer email
    assert tickets[1]["email"] == "luca@example.com"
    assert all(t["amount_paid"] == 2000 and t["quantity"] == 1 for t in tickets)
    assert tickets[0]["purchase_date"] == datetime(2025, 11, 3, 21, 18, 51, tzinfo=timezone.utc)


def test_plan_tickets_skips_imported_charges():
    rows = [row for row in read_rows(STRIPE_EXPORT) if is_ticket_purchase(row)]
    tickets = plan_tickets(rows, next_ticket_number=1, already_imported=["ch_2-0", "ch_2-1", "ch_2-2"])

    assert {t["payment_intent_id"] for t in tickets} == {"ch_1", "ch_3"}
    assert [t["ticket_number"] for t in tickets] == [1, 2, 3]


# Import

@pytest.mark.asyncio
async def test_import_tickets(db_session):
    summary = await import_tickets(db_session, STRIPE_EXPORT)

    assert summary.rows_read == 5
    assert summary.purchases_selected == 3
    assert summary.tickets_inserted == 6
    assert summary.first_ticket_number == 1
    assert summary.last_ticket_number == 6
    assert summary.failed_batches == []
    assert await ticket_count(db_session) == 6


@pytest.mark.asyncio
async def test_numbering_continues_from_highest(db_session):
    db_session.add(CommercialOperationTicket(
        uuid="pi_old-0",
        ticket_number=41,
        payment_intent_id="pi_old",
        amount_paid=2000,
    ))
    await db_session.commit()

    summary = await import_tickets(db_session, STRIPE_EXPORT)

    assert summary.first_ticket_number == 42
    assert summary.last_ticket_number == 47


@pytest.mark.asyncio
async def test_reimport_is_skipped(db_session):
    await import_tickets(db_session, STRIPE_EXPORT)
    summary = await import_tickets(db_session, STRIPE_EXPORT)

    assert summary.charges_skipped == 3
    assert summary.tickets_inserted == 0
    assert summary.first_ticket_number is None
    assert await ticket_count(db_session) == 6


@pytest.mark.asyncio
async def test_inserts_in_batches_of_fifty(db_session, mocker):
    commit = mocker.spy(db_session, "commit")

    summary = await import_tickets(db_session, single_charge_export(120))

    assert summary.tickets_inserted == 120
    assert commit.call_count == 3
    assert summary.last_ticket_number == 120


@pytest.mark.asyncio
async def test_failed_batch_is_logged_and_skipped(db_session, mocker):
    real_commit = db_session.commit
    calls = {"count": 0}

    async def flaky_commit():
        calls["count"] += 1
        if calls["count"] == 2:
            raise OperationalError("INSERT", {}, Exception("deadlock"))
        return await real_commit()

    mocker.patch.object(db_session, "commit", side_effect=flaky_commit)

    summary = await import_tickets(db_session, single_charge_export(120))

    assert summary.failed_batches == [2]
    assert summary.tickets_inserted == 70
    assert summary.first_ticket_number == 1
    assert summary.last_ticket_number == 120
    assert await ticket_count(db_session) == 70


# Command line

def test_cli_requires_csv_path(mocker):
    mocker.patch("sys.argv", ["import_stripe_tickets"])
    with pytest.raises(SystemExit) as exc_info:
        import_stripe_tickets.main()
    assert exc_info.value.code == 2


def test_cli_missing_file(mocker, tmp_path):
    mocker.patch("sys.argv", ["import_stripe_tickets", str(tmp_path / "missing.csv")])
    with pytest.raises(SystemExit) as exc_info:
        import_stripe_tickets.main()
    assert exc_info.value.code == 1


@pytest.mark.asyncio
async def test_rerun_after_failed_batch_imports_missing_tickets(db_session, mocker):
    real_commit = db_session.commit
    calls = {"count": 0}

    async def flaky_commit():
        calls["count"] += 1
        if calls["count"] == 2:
            raise OperationalError("INSERT", {}, Exception("deadlock"))
        return await real_commit()

    mocker.patch.object(db_session, "commit", side_effect=flaky_commit)
    first = await import_tickets(db_session, single_charge_export(120))
    assert first.failed_batches == [2]

    summary = await import_tickets(db_session, single_charge_export(120))

    assert summary.tickets_prepared == 50
    assert summary.tickets_inserted == 50
    assert summary.charges_skipped == 0
    assert summary.first_ticket_number == 121
    assert summary.last_ticket_number == 170
    assert await ticket_count(db_session) == 120

    result = await db_session.execute(select(CommercialOperationTicket.uuid))
    assert {f"ch_bulk-{i}" for i in range(120)} == set(result.scalars().all())


@pytest.mark.asyncio
async def test_malformed_quantity_does_not_abort_import(db_session):
    export = "\n".join([
        HEADER,
        'ch_bad,Paid,"40,00",eur,2025-11-08 08:00:00,,bad@example.com,lottery-ticket,abc',
        'ch_ok,Paid,"20,00",eur,2025-11-08 09:00:00,,ok@example.com,lottery-ticket,1',
    ])

    summary = await import_tickets(db_session, export)

    assert summary.tickets_inserted == 3
    assert summary.failed_batches == []
    assert await ticket_count(db_session) == 3
