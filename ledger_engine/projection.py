"""
Recurring-template expansion.

Templates are expanded into POTENTIAL transactions on the fly; nothing
generated here is stored. Expansion is deterministic: the n-th occurrence is
always `start_date + n * interval` units, computed from the start date so
month-end dates do not drift, and instance ids are derived from the template
id and the occurrence date.
"""

import logging
from datetime import date, timedelta
from typing import Iterable, Iterator, Optional, Tuple, Union

from dateutil.relativedelta import relativedelta

from ledger_engine.dates import add_months
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
from ledger_engine.filters import is_potential

logger = logging.getLogger(__name__)

Template = Union[RecurringExpense, RecurringTransfer]


def _offset(frequency: RecurringFrequency, n: int) -> relativedelta:
    if frequency is RecurringFrequency.WEEKLY:
        return relativedelta(weeks=n)
    if frequency is RecurringFrequency.MONTHLY:
        return relativedelta(months=n)
    if frequency is RecurringFrequency.ANNUAL:
        return relativedelta(years=n)
    raise ValueError(f"Unsupported frequency {frequency!r}")


def occurrence_dates(
    template: Template, from_date: Optional[date], to_date: date
) -> Iterator[date]:
    """Occurrence dates of a template within [from_date, to_date]."""
    interval = max(1, template.interval)
    n = 0
    while template.occurrences is None or n < template.occurrences:
        current = template.start_date + _offset(template.frequency, n * interval)
        if current > to_date:
            return
        if template.end_date is not None and current > template.end_date:
            return
        if from_date is None or current >= from_date:
            yield current
        n += 1


def expand_recurring_expense(
    template: RecurringExpense, from_date: Optional[date], to_date: date
) -> Iterator[Transaction]:
    for day in occurrence_dates(template, from_date, to_date):
        yield Transaction(
            id=f"rec-{template.id}-{day.isoformat()}",
            account_id=template.account_id,
            amount=template.amount,
            type=TransactionType.EXPENSE,
            date=day,
            effective_date=day,
            status=TransactionStatus.POTENTIAL,
            description=template.description,
            category_id=template.category_id,
            recurring_expense_id=template.id,
        )


def _endpoint_ok(account_id: str, reserve_id: Optional[str], accounts, reserves) -> bool:
    if account_id not in accounts:
        return False
    if reserve_id is None:
        return True
    reserve = reserves.get(reserve_id)
    return reserve is not None and reserve.account_id == account_id


def expand_recurring_transfer(
    template: RecurringTransfer,
    accounts: Iterable[Account],
    reserves: Iterable[Reserve],
    from_date: Optional[date],
    to_date: date,
) -> Iterator[Transaction]:
    """Each occurrence yields the outgoing leg then the incoming leg."""
    account_map = {a.id: a for a in accounts}
    reserve_map = {r.id: r for r in reserves}

    if not (
        _endpoint_ok(template.source_account_id, template.source_reserve_id, account_map, reserve_map)
        and _endpoint_ok(template.destination_account_id, template.destination_reserve_id, account_map, reserve_map)
    ):
        logger.warning("Recurring transfer %s has an unknown endpoint, skipped", template.id)
        return

    source = account_map[template.source_account_id]
    destination = account_map[template.destination_account_id]

    for day in occurrence_dates(template, from_date, to_date):
        stamp = day.isoformat()
        transfer_id = f"rec-trsf-{template.id}-{stamp}"
        yield Transaction(
            id=f"rect-exp-{template.id}-{stamp}",
            account_id=source.id,
            amount=template.amount,
            type=TransactionType.EXPENSE,
            date=day,
            effective_date=day,
            status=TransactionStatus.POTENTIAL,
            description=template.description or f"Transfer to {destination.name}",
            reserve_id=template.source_reserve_id,
            recurring_transfer_id=template.id,
            transfer_id=transfer_id,
        )
        yield Transaction(
            id=f"rect-inc-{template.id}-{stamp}",
            account_id=destination.id,
            amount=template.amount,
            type=TransactionType.INCOME,
            date=day,
            effective_date=day,
            status=TransactionStatus.POTENTIAL,
            description=template.description or f"Transfer from {source.name}",
            reserve_id=template.destination_reserve_id,
            recurring_transfer_id=template.id,
            transfer_id=transfer_id,
        )


def reimbursement_transactions(
    reimbursements: Iterable[Reimbursement], transactions: Iterable[Transaction]
) -> Tuple[Transaction, ...]:
    """Expected refunds as POTENTIAL income on the original expense's account."""
    by_id = {t.id: t for t in transactions}
    generated = []
    for r in reimbursements:
        if r.status is not ReimbursementStatus.PENDING:
            continue
        original = by_id.get(r.transaction_id)
        if original is None:
            logger.warning("Reimbursement %s points at missing transaction %s", r.id, r.transaction_id)
            continue
        generated.append(
            Transaction(
                id=f"reimb-pot-{r.id}",
                account_id=original.account_id,
                amount=r.expected_amount,
                type=TransactionType.INCOME,
                date=r.expected_date,
                effective_date=r.expected_date,
                status=TransactionStatus.POTENTIAL,
                description=f"Expected refund for: {original.description}",
                category_id=original.category_id,
                reimbursement_id=r.id,
            )
        )
    return tuple(generated)


def project_ledger(
    transactions: Iterable[Transaction],
    as_of: date,
    recurring_expenses: Iterable[RecurringExpense] = (),
    recurring_transfers: Iterable[RecurringTransfer] = (),
    reimbursements: Iterable[Reimbursement] = (),
    accounts: Iterable[Account] = (),
    reserves: Iterable[Reserve] = (),
    horizon_months: int = 12,
) -> Tuple[Transaction, ...]:
    """The ledger plus every projected instance up to `as_of + horizon_months`.

    Templates are expanded from their own start date, so occurrences that are
    already due but not yet settled show up as pending. An occurrence already
    present in the ledger (same template and nominal date) is not generated
    again.
    """
    base = tuple(transactions)
    accounts = tuple(accounts)
    reserves = tuple(reserves)
    to_date = add_months(as_of, horizon_months)

    seen_expenses = {(t.recurring_expense_id, t.date) for t in base if t.recurring_expense_id}
    seen_transfers = {(t.recurring_transfer_id, t.date) for t in base if t.recurring_transfer_id}

    expenses = tuple(
        t
        for template in recurring_expenses
        for t in expand_recurring_expense(template, None, to_date)
        if (t.recurring_expense_id, t.date) not in seen_expenses
    )
    transfers = tuple(
        t
        for template in recurring_transfers
        for t in expand_recurring_transfer(template, accounts, reserves, None, to_date)
        if (t.recurring_transfer_id, t.date) not in seen_transfers
    )
    refunds = reimbursement_transactions(reimbursements, base + expenses + transfers)

    logger.debug(
        "Projected %d recurring expenses, %d transfer legs, %d refunds up to %s",
        len(expenses), len(transfers), len(refunds), to_date,
    )
    return base + expenses + transfers + refunds


def pending_transactions(
    transactions: Iterable[Transaction], as_of: date
) -> Tuple[Transaction, ...]:
    """Scheduled transactions whose nominal date has passed without settling."""
    overdue = (
        t for t in transactions
        if is_potential(t) and not t.is_simulation and t.date < as_of
    )
    return tuple(sorted(overdue, key=lambda t: (t.date, t.id)))


def upcoming_transactions(
    transactions: Iterable[Transaction], as_of: date, days: int = 7, limit: int = 3
) -> Tuple[Transaction, ...]:
    horizon = as_of + timedelta(days=days)
    soon = (
        t for t in transactions
        if is_potential(t) and as_of < t.date <= horizon
    )
    return tuple(sorted(soon, key=lambda t: (t.date, t.id))[: max(0, limit)])
