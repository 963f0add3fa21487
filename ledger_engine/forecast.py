"""
Month-by-month balance forecast.

Month 0 is the month containing `as_of`. Opening balances are the account
initial balance plus every REAL transaction effective before the first day
of that month; each forecast point then adds every transaction, REAL or
POTENTIAL, effective from that first day up to the end of the point's month.
"""

import logging
import math
from datetime import date
from typing import Iterable, Iterator, Optional, Tuple

from ledger_engine.balances import LedgerIndex, fold_signed
from ledger_engine.config import DEFAULT_SETTINGS, EngineSettings
from ledger_engine.dates import month_end, month_start, month_starts
from ledger_engine.deferred import cash_flow_transactions
from ledger_engine.domain import (
    Account,
    ForecastPoint,
    RecurringExpense,
    RecurringTransfer,
    Reimbursement,
    Reserve,
    ReserveForecastPoint,
    Transaction,
)
from ledger_engine.filters import simulation_allowed
from ledger_engine.functional import pipe
from ledger_engine.projection import project_ledger

logger = logging.getLogger(__name__)


def accounts_in_scope(
    accounts: Iterable[Account], included_account_ids: Iterable[str]
) -> Tuple[Account, ...]:
    included = set(included_account_ids)
    if not included:
        return tuple(accounts)
    return tuple(a for a in accounts if a.id in included)


def _balance_at(
    trans: Iterable[Transaction], opening: float, start: date, boundary: date
) -> float:
    return fold_signed(
        (
            t for t in trans
            if (t.is_real and t.effective_date < start)
            or start <= t.effective_date <= boundary
        ),
        opening,
    )


def forecast_ledger(
    accounts: Tuple[Account, ...],
    reserves: Tuple[Reserve, ...],
    transactions: Iterable[Transaction],
    as_of: date,
    settings: EngineSettings,
    recurring_expenses: Iterable[RecurringExpense] = (),
    recurring_transfers: Iterable[RecurringTransfer] = (),
    reimbursements: Iterable[Reimbursement] = (),
) -> LedgerIndex:
    """Ledger with projected instances, filtered and indexed for forecasting."""
    allowed = simulation_allowed(settings.include_simulation)

    def _project(trans):
        return project_ledger(
            trans,
            as_of,
            recurring_expenses=recurring_expenses,
            recurring_transfers=recurring_transfers,
            reimbursements=reimbursements,
            accounts=accounts,
            reserves=reserves,
            horizon_months=settings.horizon_months,
        )

    def _cash_flow(trans):
        if not settings.enable_deferred_debit:
            return trans
        return cash_flow_transactions(accounts, trans, as_of, settings.horizon_months)

    def _filter(trans):
        return (t for t in trans if allowed(t))

    return pipe(transactions, _project, _cash_flow, _filter, LedgerIndex)


def iter_forecast(
    accounts: Iterable[Account],
    reserves: Iterable[Reserve],
    transactions: Iterable[Transaction],
    as_of: date,
    settings: EngineSettings = DEFAULT_SETTINGS,
    recurring_expenses: Iterable[RecurringExpense] = (),
    recurring_transfers: Iterable[RecurringTransfer] = (),
    reimbursements: Iterable[Reimbursement] = (),
) -> Iterator[ForecastPoint]:
    accounts = tuple(accounts)
    reserves = tuple(reserves)
    scope = accounts_in_scope(accounts, settings.included_account_ids)
    index = forecast_ledger(
        accounts, reserves, transactions, as_of, settings,
        recurring_expenses, recurring_transfers, reimbursements,
    )
    start = month_start(as_of)
    logger.debug(
        "Forecasting %d accounts over %d months from %s (%d transactions)",
        len(scope), settings.horizon_months, start, len(index),
    )

    for month in month_starts(as_of, settings.horizon_months):
        boundary = month_end(month)
        balances = {
            a.id: _balance_at(index.for_account(a.id), a.initial_balance, start, boundary)
            for a in scope
        }
        reserve_balances = {
            r.id: _balance_at(index.for_reserve(r.id), 0.0, start, boundary)
            for r in reserves
        }
        yield ForecastPoint(
            month=month,
            total_balance=math.fsum(balances.values()),
            balances=balances,
            reserve_balances=reserve_balances,
        )


def generate_forecast(
    accounts: Iterable[Account],
    reserves: Iterable[Reserve],
    transactions: Iterable[Transaction],
    as_of: date,
    settings: Optional[EngineSettings] = None,
    recurring_expenses: Iterable[RecurringExpense] = (),
    recurring_transfers: Iterable[RecurringTransfer] = (),
    reimbursements: Iterable[Reimbursement] = (),
) -> Tuple[ForecastPoint, ...]:
    return tuple(
        iter_forecast(
            accounts,
            reserves,
            transactions,
            as_of,
            settings or DEFAULT_SETTINGS,
            recurring_expenses,
            recurring_transfers,
            reimbursements,
        )
    )


def generate_reserve_forecast(
    reserves: Iterable[Reserve],
    transactions: Iterable[Transaction],
    as_of: date,
    horizon_months: int = 12,
) -> Tuple[ReserveForecastPoint, ...]:
    reserves = tuple(reserves)
    index = LedgerIndex(t for t in transactions if not t.is_simulation and t.reserve_id)
    start = month_start(as_of)
    return tuple(
        ReserveForecastPoint(
            month=month,
            balances={
                r.id: _balance_at(index.for_reserve(r.id), 0.0, start, month_end(month))
                for r in reserves
            },
        )
        for month in month_starts(as_of, horizon_months)
    )
