"""
Deferred-debit (credit-card style) accounts.

Expenses on such an account accrue during a billing cycle and are settled
in one debit on the linked account on `debit_day`. A cycle runs from one
settlement day (inclusive) to the day before the next one: a purchase made
on the settlement day opens the new cycle.
"""

import logging
import math
from datetime import date, timedelta
from typing import Iterable, Optional, Tuple

from ledger_engine.dates import day_in_month
from ledger_engine.domain import (
    Account,
    DeferredDebitSpending,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from ledger_engine.filters import (
    all_of,
    by_account,
    by_type,
    effective_between,
    is_real,
    not_simulated,
)
from ledger_engine.lazy import iter_transactions

logger = logging.getLogger(__name__)


def _shift(year: int, month: int, months: int) -> Tuple[int, int]:
    index = year * 12 + (month - 1) + months
    return index // 12, index % 12 + 1


def settlement_date(debit_day: int, year: int, month: int, months: int = 0) -> date:
    y, m = _shift(year, month, months)
    return day_in_month(y, m, debit_day)


def next_debit_date(debit_day: int, today: date) -> date:
    """First settlement strictly after today."""
    candidate = settlement_date(debit_day, today.year, today.month)
    if today >= candidate:
        candidate = settlement_date(debit_day, today.year, today.month, 1)
    return candidate


def previous_settlement(debit_day: int, settlement: date) -> date:
    return settlement_date(debit_day, settlement.year, settlement.month, -1)


def _cycle_expenses(
    account: Account, transactions: Iterable[Transaction], start: date, end: date
) -> float:
    pred = all_of(
        by_account(account.id),
        is_real,
        not_simulated,
        by_type(TransactionType.EXPENSE),
        effective_between(start, end),
    )
    return math.fsum(t.amount for t in iter_transactions(transactions, pred))


def calculate_current_deferred_debit_spending(
    account: Account, transactions: Iterable[Transaction], today: date
) -> Optional[DeferredDebitSpending]:
    if not account.type.is_deferred or not account.debit_day:
        return None

    upcoming = next_debit_date(account.debit_day, today)
    cycle_start = previous_settlement(account.debit_day, upcoming)
    logger.debug(
        "Open cycle for %s: %s..%s, settles %s",
        account.id, cycle_start, today, upcoming,
    )
    total = _cycle_expenses(account, transactions, cycle_start, today)
    return DeferredDebitSpending(total=total, next_debit_date=upcoming)


def generate_deferred_debit_settlements(
    accounts: Iterable[Account],
    transactions: Iterable[Transaction],
    today: date,
    months: int = 12,
) -> Tuple[Transaction, ...]:
    """POTENTIAL settlement debits on the linked accounts for upcoming cycles.

    A settlement is skipped when its cycle is empty or a REAL settlement for
    the same card and date is already in the ledger.
    """
    transactions = tuple(transactions)
    settled = {
        (t.deferred_debit_source_account_id, t.date)
        for t in transactions
        if t.deferred_debit_source_account_id and t.is_real
    }

    generated = []
    for acc in accounts:
        if not (acc.type.is_deferred and acc.linked_account_id and acc.debit_day):
            continue

        first = next_debit_date(acc.debit_day, today)
        for i in range(months):
            debit = settlement_date(acc.debit_day, first.year, first.month, i)
            cycle_start = previous_settlement(acc.debit_day, debit)
            cycle_end = debit - timedelta(days=1)

            total = _cycle_expenses(acc, transactions, cycle_start, cycle_end)
            if total <= 0 or (acc.id, debit) in settled:
                continue

            generated.append(
                Transaction(
                    id=f"dd-sum-{acc.id}-{debit.isoformat()}",
                    account_id=acc.linked_account_id,
                    amount=total,
                    type=TransactionType.EXPENSE,
                    date=debit,
                    effective_date=debit,
                    status=TransactionStatus.POTENTIAL,
                    description=f"Card settlement {acc.name}",
                    deferred_debit_source_account_id=acc.id,
                )
            )

    return tuple(generated)


def cash_flow_transactions(
    accounts: Iterable[Account],
    transactions: Iterable[Transaction],
    today: date,
    months: int = 12,
) -> Tuple[Transaction, ...]:
    """Ledger as cash actually moves: card spending replaced by its settlements."""
    accounts = tuple(accounts)
    transactions = tuple(transactions)
    deferred_ids = {a.id for a in accounts if a.type.is_deferred}
    cash = tuple(t for t in transactions if t.account_id not in deferred_ids)
    return cash + generate_deferred_debit_settlements(accounts, transactions, today, months)
