from datetime import date
from typing import Callable

from ledger_engine.domain import Transaction, TransactionStatus, TransactionType

Predicate = Callable[[Transaction], bool]


def by_account(account_id: str) -> Predicate:
    def _filter(t: Transaction) -> bool:
        return t.account_id == account_id

    return _filter


def by_reserve(reserve_id: str) -> Predicate:
    def _filter(t: Transaction) -> bool:
        return t.reserve_id == reserve_id

    return _filter


def by_type(kind: TransactionType) -> Predicate:
    def _filter(t: Transaction) -> bool:
        return t.type is kind

    return _filter


def effective_on_or_before(as_of: date) -> Predicate:
    def _filter(t: Transaction) -> bool:
        return t.effective_date <= as_of

    return _filter


def effective_between(start: date, end: date) -> Predicate:
    """Inclusive on both ends."""
    def _filter(t: Transaction) -> bool:
        return start <= t.effective_date <= end

    return _filter


def in_month(year: int, month: int) -> Predicate:
    def _filter(t: Transaction) -> bool:
        return t.effective_date.year == year and t.effective_date.month == month

    return _filter


def is_real(t: Transaction) -> bool:
    return t.status is TransactionStatus.REAL


def is_potential(t: Transaction) -> bool:
    return t.status is TransactionStatus.POTENTIAL


def not_simulated(t: Transaction) -> bool:
    return not t.is_simulation


def simulation_allowed(include_simulation: bool) -> Predicate:
    if include_simulation:
        return lambda t: True
    return not_simulated


def all_of(*preds: Predicate) -> Predicate:
    def _filter(t: Transaction) -> bool:
        return all(p(t) for p in preds)

    return _filter
