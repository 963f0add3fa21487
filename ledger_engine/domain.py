from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional


class LedgerDataError(ValueError):
    """Snapshot data that cannot be turned into ledger entities."""


class AccountType(str, Enum):
    STANDARD = "STANDARD"
    SAVINGS = "SAVINGS"
    DEFERRED_DEBIT = "DEFERRED_DEBIT"

    @property
    def is_deferred(self) -> bool:
        return self is AccountType.DEFERRED_DEBIT


class TransactionType(str, Enum):
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


class TransactionStatus(str, Enum):
    REAL = "REAL"            # settled, historical fact
    POTENTIAL = "POTENTIAL"  # scheduled, not yet settled


class RecurringFrequency(str, Enum):
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    ANNUAL = "ANNUAL"


class ReimbursementStatus(str, Enum):
    PENDING = "PENDING"
    RECEIVED = "RECEIVED"


@dataclass(frozen=True)
class Account:
    id: str
    name: str
    initial_balance: float = 0.0
    type: AccountType = AccountType.STANDARD
    color: Optional[str] = None
    icon: Optional[str] = None
    linked_account_id: Optional[str] = None  # account the deferred debit settles into
    debit_day: Optional[int] = None          # day of month the card settles


@dataclass(frozen=True)
class Category:
    id: str
    name: str
    type: TransactionType


@dataclass(frozen=True)
class Transaction:
    id: str
    account_id: str
    amount: float                # always >= 0, direction comes from `type`
    type: TransactionType
    date: date                   # nominal / scheduled date
    effective_date: date         # date the amount hits the balance
    status: TransactionStatus = TransactionStatus.REAL
    description: str = ""
    reserve_id: Optional[str] = None
    category_id: Optional[str] = None
    tags: frozenset = frozenset()
    is_simulation: bool = False
    recurring_expense_id: Optional[str] = None
    recurring_transfer_id: Optional[str] = None
    transfer_id: Optional[str] = None
    reimbursement_id: Optional[str] = None
    deferred_debit_source_account_id: Optional[str] = None

    @property
    def signed_amount(self) -> float:
        if self.type is TransactionType.INCOME:
            return self.amount
        return -self.amount

    @property
    def is_real(self) -> bool:
        return self.status is TransactionStatus.REAL


@dataclass(frozen=True)
class Reserve:
    id: str
    name: str
    account_id: str
    target_amount: Optional[float] = None
    target_date: Optional[date] = None

    @property
    def is_goal(self) -> bool:
        return bool(self.target_amount and self.target_amount > 0)


@dataclass(frozen=True)
class Loan:
    id: str
    name: str
    initial_amount: float
    term_in_months: int
    linked_recurring_expense_id: str
    payments_made_initially: int = 0
    start_date: Optional[date] = None
    interest_rate: float = 0.0  # annual percentage, only read by the annuity model
    monthly_payment: Optional[float] = None


@dataclass(frozen=True)
class ManualAsset:
    id: str
    name: str
    value: float
    icon: Optional[str] = None


@dataclass(frozen=True)
class BudgetLimit:
    category_id: str
    amount: float


@dataclass(frozen=True)
class CategorizationRule:
    id: str
    keyword: str
    category_id: str


# A recurring template generates POTENTIAL expense instances on a cadence.
@dataclass(frozen=True)
class RecurringExpense:
    id: str
    account_id: str
    amount: float
    frequency: RecurringFrequency
    start_date: date
    end_date: Optional[date] = None
    description: str = ""
    category_id: Optional[str] = None
    interval: int = 1                   # every `interval` weeks / months / years
    occurrences: Optional[int] = None   # term limit, counted from start_date


@dataclass(frozen=True)
class RecurringTransfer:
    id: str
    amount: float
    frequency: RecurringFrequency
    start_date: date
    source_account_id: str
    destination_account_id: str
    source_reserve_id: Optional[str] = None
    destination_reserve_id: Optional[str] = None
    end_date: Optional[date] = None
    description: str = ""
    interval: int = 1
    occurrences: Optional[int] = None


@dataclass(frozen=True)
class Reimbursement:
    id: str
    transaction_id: str
    expected_amount: float
    expected_date: date
    status: ReimbursementStatus = ReimbursementStatus.PENDING


@dataclass(frozen=True)
class DeferredDebitSpending:
    total: float
    next_debit_date: date


@dataclass(frozen=True)
class ForecastPoint:
    month: date  # first day of the forecast month
    total_balance: float
    balances: Mapping[str, float] = field(default_factory=dict, hash=False)
    reserve_balances: Mapping[str, float] = field(default_factory=dict, hash=False)

    def __post_init__(self):
        object.__setattr__(self, "balances", MappingProxyType(dict(self.balances)))
        object.__setattr__(self, "reserve_balances", MappingProxyType(dict(self.reserve_balances)))

    @property
    def year_month(self) -> str:
        return self.month.strftime("%Y-%m")


@dataclass(frozen=True)
class ReserveForecastPoint:
    month: date
    balances: Mapping[str, float] = field(default_factory=dict, hash=False)

    def __post_init__(self):
        object.__setattr__(self, "balances", MappingProxyType(dict(self.balances)))

    @property
    def year_month(self) -> str:
        return self.month.strftime("%Y-%m")


@dataclass(frozen=True)
class NetWorth:
    liquid_assets: float
    other_assets: float
    total_liabilities: float

    @property
    def total_assets(self) -> float:
        return self.liquid_assets + self.other_assets

    @property
    def net_worth(self) -> float:
        return self.total_assets - self.total_liabilities
