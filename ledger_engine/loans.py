"""
Loan tracking.

The remaining principal is derived from how many linked recurring payments
have been observed. The default model is straight-line by payment count:
`term_in_months` is a divisor, not an interest schedule. The annuity model
reads `interest_rate` and is only used when asked for explicitly.
"""

from __future__ import annotations

import math
from functools import lru_cache
from typing import Iterable

from ledger_engine.config import AmortizationModel
from ledger_engine.domain import Loan, Transaction


def count_loan_payments(loan: Loan, transactions: Iterable[Transaction]) -> int:
    observed = sum(
        1
        for t in transactions
        if t.recurring_expense_id == loan.linked_recurring_expense_id
        and t.is_real
        and not t.is_simulation
        and (loan.start_date is None or t.date >= loan.start_date)
    )
    return observed + max(0, loan.payments_made_initially or 0)


@lru_cache(maxsize=None)
def calculate_monthly_payment(principal: float, annual_rate: float, term_in_months: int) -> float:
    """Level payment (PMT) with a near-zero rate guard."""
    if term_in_months <= 0:
        return 0.0
    monthly_rate = annual_rate / 100 / 12
    if abs(monthly_rate) < 1e-12:
        return principal / term_in_months
    growth = (1 + monthly_rate) ** term_in_months
    return principal * monthly_rate * growth / (growth - 1)


def _straight_line(loan: Loan, payments: int) -> float:
    return loan.initial_amount * max(0.0, 1 - payments / loan.term_in_months)


def _annuity(loan: Loan, payments: int) -> float:
    r = loan.interest_rate / 100 / 12
    if abs(r) < 1e-12:
        return _straight_line(loan, payments)
    n = loan.term_in_months
    remaining = loan.initial_amount * ((1 + r) ** n - (1 + r) ** payments) / ((1 + r) ** n - 1)
    return max(0.0, remaining)


def calculate_loan_remaining_balance(
    loan: Loan,
    transactions: Iterable[Transaction],
    model: AmortizationModel = AmortizationModel.STRAIGHT_LINE,
) -> float:
    payments = count_loan_payments(loan, transactions)
    if payments == 0:
        return loan.initial_amount
    if loan.term_in_months <= 0 or payments >= loan.term_in_months:
        return 0.0
    if model is AmortizationModel.ANNUITY:
        return _annuity(loan, payments)
    return _straight_line(loan, payments)


def loan_progress(loan: Loan, transactions: Iterable[Transaction]) -> float:
    """Share of the term already paid, as a percentage in [0, 100]."""
    if loan.term_in_months <= 0:
        return 0.0
    payments = count_loan_payments(loan, transactions)
    return min(100.0, payments / loan.term_in_months * 100)


def amount_repaid_ratio(
    loan: Loan,
    transactions: Iterable[Transaction],
    model: AmortizationModel = AmortizationModel.STRAIGHT_LINE,
) -> float:
    """Repaid share of the principal in [0, 1]; 0 for a zero-amount loan."""
    if loan.initial_amount <= 0:
        return 0.0
    remaining = calculate_loan_remaining_balance(loan, transactions, model)
    return min(1.0, max(0.0, 1 - remaining / loan.initial_amount))


def payments_made_from_remaining_balance(
    initial_amount: float,
    annual_rate: float,
    term_in_months: int,
    remaining_balance: float,
) -> int:
    """Number of level payments that leave `remaining_balance` outstanding."""
    if remaining_balance >= initial_amount:
        return 0
    if remaining_balance <= 0 or term_in_months <= 0:
        return max(0, term_in_months)

    r = annual_rate / 100 / 12
    if abs(r) < 1e-12:
        per_month = initial_amount / term_in_months
        return round((initial_amount - remaining_balance) / per_month)

    growth = (1 + r) ** term_in_months
    term = growth - (remaining_balance / initial_amount) * (growth - 1)
    if term <= 0:
        return term_in_months
    return round(math.log(term) / math.log(1 + r))
