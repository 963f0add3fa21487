"""
Lookup and validation results.

`Maybe` wraps a lookup that may find nothing (a category id on a
transaction); `Either` carries a validated transaction or the first rule
it broke, as an error dict.
"""

from dataclasses import dataclass
from functools import reduce
from typing import Any, Callable, Dict, Generic, Iterable, Optional, Tuple, TypeVar

from ledger_engine.domain import (
    Account,
    Category,
    Reserve,
    Transaction,
    TransactionType,
)

T = TypeVar('T')
U = TypeVar('U')
E = TypeVar('E')


class Maybe(Generic[T]):

    def is_some(self) -> bool:
        return isinstance(self, Some)

    def is_none(self) -> bool:
        return not self.is_some()


@dataclass(frozen=True)
class Some(Maybe[T]):
    value: T

    def map(self, f: Callable[[T], U]) -> Maybe[U]:
        return Some(f(self.value))

    def get_or_else(self, default: T) -> T:
        return self.value


@dataclass(frozen=True)
class Nothing(Maybe[T]):

    def map(self, f: Callable[[T], U]) -> Maybe[U]:
        return Nothing()

    def get_or_else(self, default: T) -> T:
        return default


class Either(Generic[E, T]):

    def is_right(self) -> bool:
        return isinstance(self, Right)

    def is_left(self) -> bool:
        return not self.is_right()


@dataclass(frozen=True)
class Right(Either[E, T]):
    value: T

    def bind(self, f: Callable[[T], Either[E, U]]) -> Either[E, U]:
        return f(self.value)

    def get_or_else(self, default: T) -> T:
        return self.value

    def get_error(self) -> E:
        raise ValueError("Right carries no error")


@dataclass(frozen=True)
class Left(Either[E, T]):
    error: E

    def bind(self, f: Callable[[T], Either[E, U]]) -> Either[E, U]:
        return self

    def get_or_else(self, default: T) -> T:
        return default

    def get_error(self) -> E:
        return self.error


ErrorDict = Dict[str, Any]
Check = Callable[[Transaction], Either[ErrorDict, Transaction]]


def safe_category(cats: Iterable[Category], cat_id: Optional[str]) -> Maybe[Category]:
    if cat_id is None:
        return Nothing()
    for cat in cats:
        if cat.id == cat_id:
            return Some(cat)
    return Nothing()


def account_exists(accs: Iterable[Account]) -> Check:
    ids = {acc.id for acc in accs}

    def _check(t: Transaction) -> Either[ErrorDict, Transaction]:
        if t.account_id in ids:
            return Right(t)
        return Left({
            "error": "account_not_found",
            "message": f"Account with ID {t.account_id} does not exist",
            "account_id": t.account_id,
        })

    return _check


def reserve_on_account(reserves: Iterable[Reserve]) -> Check:
    owners = {r.id: r.account_id for r in reserves}

    def _check(t: Transaction) -> Either[ErrorDict, Transaction]:
        if t.reserve_id is None or owners.get(t.reserve_id) == t.account_id:
            return Right(t)
        return Left({
            "error": "reserve_not_found",
            "message": f"Reserve with ID {t.reserve_id} does not exist on account {t.account_id}",
            "reserve_id": t.reserve_id,
        })

    return _check


def positive_amount(t: Transaction) -> Either[ErrorDict, Transaction]:
    if t.amount >= 0:
        return Right(t)
    return Left({
        "error": "negative_amount",
        "message": f"Amounts are stored positive, got {t.amount} on {t.id}",
        "amount": t.amount,
    })


def category_accepts(cats: Iterable[Category]) -> Check:
    cats = tuple(cats)

    def _check(t: Transaction) -> Either[ErrorDict, Transaction]:
        # a missing category is not an error, it lands in the unknown bucket
        cat = safe_category(cats, t.category_id).get_or_else(None)
        if cat is None or cat.type is not TransactionType.INCOME or t.type is not TransactionType.EXPENSE:
            return Right(t)
        return Left({
            "error": "category_type_mismatch",
            "message": f"Income category {cat.name} cannot hold an expense",
            "category_id": t.category_id,
            "transaction_type": t.type.value,
        })

    return _check


def validate_transaction(
    t: Transaction,
    accs: Tuple[Account, ...],
    cats: Tuple[Category, ...],
    reserves: Tuple[Reserve, ...] = (),
) -> Either[ErrorDict, Transaction]:
    """Run the ledger rules in order; the first failing rule wins."""
    checks = (
        account_exists(accs),
        reserve_on_account(reserves),
        positive_amount,
        category_accepts(cats),
    )
    return reduce(lambda result, check: result.bind(check), checks, Right(t))


def pipe(x, *funcs):
    """Pipe a value through a series of functions.

    pipe(x, f, g, h) == h(g(f(x)))
    """
    return reduce(lambda acc, f: f(acc), funcs, x)
