import logging
import math
from datetime import date
from typing import Iterable, Mapping, Tuple

from ledger_engine.domain import Account, Reserve, Transaction
from ledger_engine.filters import (
    all_of,
    by_account,
    by_reserve,
    effective_on_or_before,
    is_real,
    not_simulated,
    simulation_allowed,
)
from ledger_engine.lazy import group_by, iter_transactions

logger = logging.getLogger(__name__)


def fold_signed(trans: Iterable[Transaction], opening: float = 0.0) -> float:
    """Sum signed amounts onto an opening balance.

    math.fsum is exactly rounded, so the result does not depend on the order
    the ledger was handed over in.
    """
    return math.fsum([opening, *(t.signed_amount for t in trans)])


def calculate_account_balance(
    account: Account,
    transactions: Iterable[Transaction],
    as_of: date,
    include_simulation: bool = False,
) -> float:
    pred = all_of(
        by_account(account.id),
        is_real,
        effective_on_or_before(as_of),
        simulation_allowed(include_simulation),
    )
    return fold_signed(iter_transactions(transactions, pred), account.initial_balance)


def calculate_current_reserve_balance(
    reserve: Reserve,
    transactions: Iterable[Transaction],
    as_of: date,
    include_simulation: bool = False,
) -> float:
    pred = all_of(
        by_reserve(reserve.id),
        is_real,
        effective_on_or_before(as_of),
        simulation_allowed(include_simulation),
    )
    return fold_signed(iter_transactions(transactions, pred))


def calculate_reserve_balance(
    reserve: Reserve, transactions: Iterable[Transaction], as_of: date
) -> float:
    """Forward-looking reserve balance: scheduled transactions count too."""
    pred = all_of(by_reserve(reserve.id), effective_on_or_before(as_of), not_simulated)
    return fold_signed(iter_transactions(transactions, pred))


def calculate_main_balance(
    account: Account,
    reserves: Iterable[Reserve],
    transactions: Iterable[Transaction],
    as_of: date,
    epsilon: float = 0.01,
) -> float:
    """Balance of the account that is not ring-fenced by one of its reserves."""
    transactions = tuple(transactions)
    reserved = math.fsum(
        calculate_current_reserve_balance(r, transactions, as_of)
        for r in reserves
        if r.account_id == account.id
    )
    main = calculate_account_balance(account, transactions, as_of) - reserved
    if main < -epsilon:
        logger.warning(
            "Reserves of account %s exceed its balance by %.2f on %s",
            account.id, -main, as_of.isoformat(),
        )
    return main


class LedgerIndex:
    """Ledger pre-indexed by account and reserve id.

    Each bucket is ordered by effective date, so per-account folds do not
    rescan the whole ledger.
    """

    def __init__(self, transactions: Iterable[Transaction]):
        self._transactions: Tuple[Transaction, ...] = tuple(transactions)
        self._by_account: Mapping[object, Tuple[Transaction, ...]] = group_by(
            self._transactions, lambda t: t.account_id
        )
        self._by_reserve: Mapping[object, Tuple[Transaction, ...]] = group_by(
            (t for t in self._transactions if t.reserve_id is not None),
            lambda t: t.reserve_id,
        )

    def __len__(self) -> int:
        return len(self._transactions)

    @property
    def transactions(self) -> Tuple[Transaction, ...]:
        return self._transactions

    def for_account(self, account_id: str) -> Tuple[Transaction, ...]:
        return self._by_account.get(account_id, ())

    def for_reserve(self, reserve_id: str) -> Tuple[Transaction, ...]:
        return self._by_reserve.get(reserve_id, ())

    def account_balance(
        self, account: Account, as_of: date, include_simulation: bool = False
    ) -> float:
        return calculate_account_balance(
            account, self.for_account(account.id), as_of, include_simulation
        )

    def reserve_balance(
        self, reserve: Reserve, as_of: date, include_simulation: bool = False
    ) -> float:
        return calculate_current_reserve_balance(
            reserve, self.for_reserve(reserve.id), as_of, include_simulation
        )
