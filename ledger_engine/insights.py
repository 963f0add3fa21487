import logging
import math
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Dict, Iterable, Mapping, Optional, Tuple

from ledger_engine.balances import calculate_account_balance, calculate_current_reserve_balance
from ledger_engine.config import DEFAULT_SETTINGS, AmortizationModel, EngineSettings
from ledger_engine.dates import add_months
from ledger_engine.domain import (
    Account,
    BudgetLimit,
    Category,
    Loan,
    ManualAsset,
    NetWorth,
    Reserve,
    Transaction,
    TransactionType,
)
from ledger_engine.filters import all_of, in_month, is_real, not_simulated
from ledger_engine.functional import safe_category
from ledger_engine.lazy import iter_transactions, top_items
from ledger_engine.loans import calculate_loan_remaining_balance

logger = logging.getLogger(__name__)

UNKNOWN_CATEGORY_ID = "unknown"


@dataclass(frozen=True)
class SavingsInsight:
    current: float
    previous: float

    @property
    def difference(self) -> float:
        return self.current - self.previous


@dataclass(frozen=True)
class BudgetAlert:
    category_id: str
    spent: float
    limit: float
    percentage: int


class GoalStatus(str, Enum):
    NO_TARGET = "NO_TARGET"
    REACHED = "REACHED"
    OVERDUE = "OVERDUE"
    LAST_MONTH = "LAST_MONTH"
    ON_TRACK = "ON_TRACK"


@dataclass(frozen=True)
class GoalProgress:
    reserve_id: str
    balance: float
    progress: Optional[float]  # percent of target, None when no target is set
    status: GoalStatus
    monthly_needed: Optional[float] = None


def month_transactions(
    transactions: Iterable[Transaction], year: int, month: int
) -> Tuple[Transaction, ...]:
    pred = all_of(in_month(year, month), is_real, not_simulated)
    return tuple(iter_transactions(transactions, pred))


def calculate_savings(
    transactions: Iterable[Transaction],
    included_income_ids: Iterable[str] = (),
    excluded_expense_ids: Iterable[str] = (),
) -> float:
    """Income minus expense; an empty income list means every income counts."""
    included = set(included_income_ids)
    excluded = set(excluded_expense_ids)
    income = []
    expense = []
    for t in transactions:
        if t.type is TransactionType.INCOME:
            if not included or t.category_id in included:
                income.append(t.amount)
        elif t.category_id is None or t.category_id not in excluded:
            expense.append(t.amount)
    return math.fsum(income) - math.fsum(expense)


def savings_insight(
    transactions: Iterable[Transaction],
    as_of: date,
    settings: EngineSettings = DEFAULT_SETTINGS,
) -> SavingsInsight:
    transactions = tuple(transactions)
    last_month = add_months(as_of.replace(day=1), -1)

    def _savings(year: int, month: int) -> float:
        return calculate_savings(
            month_transactions(transactions, year, month),
            settings.included_income_category_ids,
            settings.excluded_expense_category_ids,
        )

    return SavingsInsight(
        current=_savings(as_of.year, as_of.month),
        previous=_savings(last_month.year, last_month.month),
    )


def expenses_by_category(
    transactions: Iterable[Transaction], categories: Iterable[Category]
) -> Dict[str, float]:
    """Net spending per expense category.

    Refunds booked on an expense category reduce it. Transactions pointing at a
    category that does not exist are counted under UNKNOWN_CATEGORY_ID.
    """
    categories = tuple(categories)
    totals: Dict[str, list] = {}
    for t in transactions:
        if t.category_id is None:
            continue
        category = safe_category(categories, t.category_id)
        if category.is_none():
            if t.type is not TransactionType.EXPENSE:
                continue
            logger.warning("Transaction %s has unknown category %s", t.id, t.category_id)
            key = UNKNOWN_CATEGORY_ID
        elif category.get_or_else(None).type is TransactionType.EXPENSE:
            key = t.category_id
        else:
            continue
        totals.setdefault(key, []).append(-t.signed_amount)
    return {k: math.fsum(v) for k, v in totals.items()}


def top_expense_category(spent_by_category: Mapping[str, float]) -> Optional[Tuple[str, float]]:
    return next(top_items(spent_by_category, 1), None)


def category_name(categories: Iterable[Category], category_id: str) -> str:
    return safe_category(categories, category_id).map(lambda c: c.name).get_or_else("Unknown")


def percentage(part: float, whole: Optional[float]) -> float:
    if not whole:
        return 0.0
    return part / whole * 100


def budget_alerts(
    limits: Iterable[BudgetLimit],
    spent_by_category: Mapping[str, float],
    threshold: float = DEFAULT_SETTINGS.budget_alert_threshold,
) -> Tuple[BudgetAlert, ...]:
    alerts = []
    for limit in limits:
        spent = spent_by_category.get(limit.category_id, 0.0)
        pct = round(percentage(spent, limit.amount))
        if pct > threshold:
            alerts.append(BudgetAlert(limit.category_id, spent, limit.amount, pct))
    return tuple(sorted(alerts, key=lambda a: (-a.percentage, a.category_id)))


def savings_goal_progress(
    reserve: Reserve, transactions: Iterable[Transaction], as_of: date
) -> GoalProgress:
    balance = calculate_current_reserve_balance(reserve, transactions, as_of)
    if not reserve.is_goal:
        return GoalProgress(reserve.id, balance, None, GoalStatus.NO_TARGET)

    progress = min(percentage(balance, reserve.target_amount), 100.0)
    if balance >= reserve.target_amount:
        return GoalProgress(reserve.id, balance, progress, GoalStatus.REACHED)
    if reserve.target_date is None:
        return GoalProgress(reserve.id, balance, progress, GoalStatus.ON_TRACK)
    if reserve.target_date <= as_of:
        return GoalProgress(reserve.id, balance, progress, GoalStatus.OVERDUE)

    months_left = (
        (reserve.target_date.year - as_of.year) * 12
        + reserve.target_date.month - as_of.month
    )
    if months_left <= 0:
        return GoalProgress(reserve.id, balance, progress, GoalStatus.LAST_MONTH)

    needed = (reserve.target_amount - balance) / months_left
    return GoalProgress(reserve.id, balance, progress, GoalStatus.ON_TRACK, needed)


def calculate_net_worth(
    accounts: Iterable[Account],
    transactions: Iterable[Transaction],
    loans: Iterable[Loan],
    manual_assets: Iterable[ManualAsset],
    as_of: date,
    model: AmortizationModel = AmortizationModel.STRAIGHT_LINE,
) -> NetWorth:
    transactions = tuple(transactions)
    return NetWorth(
        liquid_assets=math.fsum(
            calculate_account_balance(a, transactions, as_of) for a in accounts
        ),
        other_assets=math.fsum(asset.value for asset in manual_assets),
        total_liabilities=math.fsum(
            calculate_loan_remaining_balance(loan, transactions, model) for loan in loans
        ),
    )


def net_worth_split(net_worth: NetWorth) -> Tuple[float, float]:
    """(assets %, liabilities %) of the combined gross position."""
    assets = net_worth.total_assets
    liabilities = net_worth.total_liabilities
    total = assets + liabilities
    if total <= 0:
        return 0.0, 0.0
    return assets / total * 100, liabilities / total * 100
