import logging
from datetime import date

from ledger_engine.domain import (
    Account,
    RecurringExpense,
    RecurringFrequency,
    RecurringTransfer,
    Reimbursement,
    ReimbursementStatus,
    Reserve,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from ledger_engine.projection import (
    expand_recurring_expense,
    expand_recurring_transfer,
    occurrence_dates,
    pending_transactions,
    project_ledger,
    reimbursement_transactions,
    upcoming_transactions,
)

MONTHLY = RecurringFrequency.MONTHLY
POTENTIAL = TransactionStatus.POTENTIAL


def make_tx(id, day, status=TransactionStatus.REAL, **kw):
    values = dict(
        id=id,
        account_id="a1",
        amount=10,
        type=TransactionType.EXPENSE,
        date=day,
        effective_date=day,
        status=status,
    )
    values.update(kw)
    return Transaction(**values)


def test_monthly_dates_do_not_drift_at_month_end():
    rent = RecurringExpense("r1", "a1", 100, MONTHLY, date(2025, 1, 31))

    dates = list(occurrence_dates(rent, None, date(2025, 5, 1)))

    assert dates == [date(2025, 1, 31), date(2025, 2, 28), date(2025, 3, 31), date(2025, 4, 30)]


def test_custom_interval_and_window():
    gym = RecurringExpense("r1", "a1", 20, RecurringFrequency.WEEKLY, date(2025, 1, 1), interval=2)

    dates = list(occurrence_dates(gym, date(2025, 1, 20), date(2025, 2, 28)))

    assert dates == [date(2025, 1, 29), date(2025, 2, 12), date(2025, 2, 26)]


def test_end_date_and_term_limit():
    ended = RecurringExpense("r1", "a1", 5, MONTHLY, date(2025, 1, 10), end_date=date(2025, 3, 9))
    limited = RecurringExpense("r2", "a1", 5, RecurringFrequency.ANNUAL, date(2020, 6, 1), occurrences=3)

    assert list(occurrence_dates(ended, None, date(2026, 1, 1))) == [date(2025, 1, 10), date(2025, 2, 10)]
    assert list(occurrence_dates(limited, None, date(2030, 1, 1))) == [
        date(2020, 6, 1), date(2021, 6, 1), date(2022, 6, 1)
    ]


def test_expanded_instances_are_potential_and_repeatable():
    rent = RecurringExpense("r1", "a1", 100, MONTHLY, date(2025, 1, 5), category_id="housing")

    first = tuple(expand_recurring_expense(rent, date(2025, 2, 1), date(2025, 4, 30)))
    second = tuple(expand_recurring_expense(rent, date(2025, 2, 1), date(2025, 4, 30)))

    assert first == second
    assert [t.id for t in first] == ["rec-r1-2025-02-05", "rec-r1-2025-03-05", "rec-r1-2025-04-05"]
    assert all(t.status is POTENTIAL for t in first)
    assert all(t.type is TransactionType.EXPENSE for t in first)
    assert all(t.recurring_expense_id == "r1" and t.category_id == "housing" for t in first)


def test_transfer_yields_both_legs():
    accounts = (Account("a1", "Checking"), Account("a2", "Savings"))
    reserves = (Reserve("res", "Holidays", "a2"),)
    transfer = RecurringTransfer(
        "tr", 50, MONTHLY, date(2025, 1, 1), "a1", "a2", destination_reserve_id="res"
    )

    legs = tuple(expand_recurring_transfer(transfer, accounts, reserves, None, date(2025, 1, 31)))

    out, into = legs
    assert out.account_id == "a1" and out.type is TransactionType.EXPENSE
    assert into.account_id == "a2" and into.type is TransactionType.INCOME
    assert into.reserve_id == "res"
    assert out.transfer_id == into.transfer_id == "rec-trsf-tr-2025-01-01"
    assert out.description == "Transfer to Savings"


def test_transfer_with_unknown_endpoint_is_skipped(caplog):
    accounts = (Account("a1", "Checking"),)
    transfer = RecurringTransfer("tr", 50, MONTHLY, date(2025, 1, 1), "a1", "gone")

    with caplog.at_level(logging.WARNING, logger="ledger_engine.projection"):
        legs = tuple(expand_recurring_transfer(transfer, accounts, (), None, date(2025, 6, 1)))

    assert legs == ()
    assert "tr" in caplog.text


def test_pending_reimbursement_becomes_potential_income():
    doctor = make_tx("t1", date(2025, 1, 3), category_id="health", description="Doctor")
    refunds = (
        Reimbursement("rb1", "t1", 25, date(2025, 1, 20)),
        Reimbursement("rb2", "t1", 25, date(2025, 1, 20), ReimbursementStatus.RECEIVED),
        Reimbursement("rb3", "missing", 25, date(2025, 1, 20)),
    )

    generated = reimbursement_transactions(refunds, (doctor,))

    assert len(generated) == 1
    refund = generated[0]
    assert refund.type is TransactionType.INCOME
    assert refund.status is POTENTIAL
    assert refund.account_id == "a1"
    assert refund.category_id == "health"
    assert refund.amount == 25


def test_project_ledger_skips_materialised_occurrences():
    rent = RecurringExpense("r1", "a1", 100, MONTHLY, date(2025, 1, 5))
    paid = make_tx("paid", date(2025, 1, 5), recurring_expense_id="r1", amount=100)

    ledger = project_ledger((paid,), date(2025, 2, 10), recurring_expenses=(rent,), horizon_months=2)

    generated = [t for t in ledger if t.status is POTENTIAL]
    assert ledger[0] is paid
    assert [t.date for t in generated] == [date(2025, 2, 5), date(2025, 3, 5), date(2025, 4, 5)]
    assert project_ledger((paid,), date(2025, 2, 10), recurring_expenses=(rent,), horizon_months=2) == ledger


def test_pending_and_upcoming():
    as_of = date(2025, 3, 10)
    txs = (
        make_tx("late", date(2025, 3, 1), POTENTIAL),
        make_tx("later", date(2025, 2, 1), POTENTIAL),
        make_tx("sim", date(2025, 2, 2), POTENTIAL, is_simulation=True),
        make_tx("real", date(2025, 3, 2)),
        make_tx("today", as_of, POTENTIAL),
        make_tx("soon", date(2025, 3, 12), POTENTIAL),
        make_tx("sooner", date(2025, 3, 11), POTENTIAL),
        make_tx("week", date(2025, 3, 17), POTENTIAL),
        make_tx("far", date(2025, 3, 18), POTENTIAL),
    )

    assert [t.id for t in pending_transactions(txs, as_of)] == ["later", "late"]
    assert [t.id for t in upcoming_transactions(txs, as_of)] == ["sooner", "soon", "week"]
    assert [t.id for t in upcoming_transactions(txs, as_of, limit=1)] == ["sooner"]
