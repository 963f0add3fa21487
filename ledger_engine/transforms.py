import json
from datetime import date, datetime
from enum import Enum
from typing import Any, Iterable, Mapping, NamedTuple, Optional, Tuple, Type, TypeVar

from ledger_engine.domain import (
    Account,
    AccountType,
    BudgetLimit,
    CategorizationRule,
    Category,
    LedgerDataError,
    Loan,
    ManualAsset,
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
from ledger_engine.functional import validate_transaction
from ledger_engine.loans import calculate_monthly_payment

EnumT = TypeVar("EnumT", bound=Enum)


class Ledger(NamedTuple):
    accounts: Tuple[Account, ...] = ()
    reserves: Tuple[Reserve, ...] = ()
    categories: Tuple[Category, ...] = ()
    transactions: Tuple[Transaction, ...] = ()
    recurring_expenses: Tuple[RecurringExpense, ...] = ()
    recurring_transfers: Tuple[RecurringTransfer, ...] = ()
    reimbursements: Tuple[Reimbursement, ...] = ()
    loans: Tuple[Loan, ...] = ()
    manual_assets: Tuple[ManualAsset, ...] = ()
    budget_limits: Tuple[BudgetLimit, ...] = ()
    categorization_rules: Tuple[CategorizationRule, ...] = ()


def parse_date(value: Any, where: str) -> date:
    # datetime is a date subclass; keep only the calendar day
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError) as e:
        raise LedgerDataError(f"{where}: invalid date {value!r}") from e


def _optional_date(value: Any, where: str) -> Optional[date]:
    return None if value in (None, "") else parse_date(value, where)


def _enum(kind: Type[EnumT], value: Any, where: str) -> EnumT:
    try:
        return kind(value)
    except ValueError as e:
        raise LedgerDataError(f"{where}: unknown {kind.__name__} {value!r}") from e


def _require(d: Mapping[str, Any], key: str, where: str) -> Any:
    if key not in d:
        raise LedgerDataError(f"{where}: missing field {key!r}")
    return d[key]


def _float(value: Any, key: str, where: str) -> float:
    if isinstance(value, bool):
        raise LedgerDataError(f"{where}: {key} must be a number, got {value!r}")
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise LedgerDataError(f"{where}: {key} must be a number, got {value!r}") from e


def _int(value: Any, key: str, where: str) -> int:
    if isinstance(value, bool):
        raise LedgerDataError(f"{where}: {key} must be a whole number, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise LedgerDataError(f"{where}: {key} must be a whole number, got {value!r}") from e


def _optional_int(d: Mapping[str, Any], key: str, where: str) -> Optional[int]:
    value = d.get(key)
    return None if value is None else _int(value, key, where)


def account_from_dict(d: Mapping[str, Any]) -> Account:
    where = f"account {d.get('id')}"
    return Account(
        id=_require(d, "id", where),
        name=_require(d, "name", where),
        initial_balance=_float(d.get("initial_balance", 0.0), "initial_balance", where),
        type=_enum(AccountType, d.get("type", "STANDARD"), where),
        color=d.get("color"),
        icon=d.get("icon"),
        linked_account_id=d.get("linked_account_id"),
        debit_day=_optional_int(d, "debit_day", where),
    )


def transaction_from_dict(d: Mapping[str, Any]) -> Transaction:
    where = f"transaction {d.get('id')}"
    nominal = parse_date(_require(d, "date", where), where)
    return Transaction(
        id=_require(d, "id", where),
        account_id=_require(d, "account_id", where),
        amount=_float(_require(d, "amount", where), "amount", where),
        type=_enum(TransactionType, _require(d, "type", where), where),
        date=nominal,
        effective_date=parse_date(d.get("effective_date", nominal), where),
        status=_enum(TransactionStatus, d.get("status", "REAL"), where),
        description=d.get("description", ""),
        reserve_id=d.get("reserve_id"),
        category_id=d.get("category_id"),
        tags=frozenset(d.get("tags") or ()),
        is_simulation=bool(d.get("is_simulation", False)),
        recurring_expense_id=d.get("recurring_expense_id"),
        recurring_transfer_id=d.get("recurring_transfer_id"),
        transfer_id=d.get("transfer_id"),
        reimbursement_id=d.get("reimbursement_id"),
        deferred_debit_source_account_id=d.get("deferred_debit_source_account_id"),
    )


def reserve_from_dict(d: Mapping[str, Any]) -> Reserve:
    where = f"reserve {d.get('id')}"
    target = d.get("target_amount")
    return Reserve(
        id=_require(d, "id", where),
        name=_require(d, "name", where),
        account_id=_require(d, "account_id", where),
        target_amount=None if target is None else _float(target, "target_amount", where),
        target_date=_optional_date(d.get("target_date"), where),
    )


def category_from_dict(d: Mapping[str, Any]) -> Category:
    where = f"category {d.get('id')}"
    return Category(
        id=_require(d, "id", where),
        name=_require(d, "name", where),
        type=_enum(TransactionType, _require(d, "type", where), where),
    )


def recurring_expense_from_dict(d: Mapping[str, Any]) -> RecurringExpense:
    where = f"recurring expense {d.get('id')}"
    return RecurringExpense(
        id=_require(d, "id", where),
        account_id=_require(d, "account_id", where),
        amount=_float(_require(d, "amount", where), "amount", where),
        frequency=_enum(RecurringFrequency, _require(d, "frequency", where), where),
        start_date=parse_date(_require(d, "start_date", where), where),
        end_date=_optional_date(d.get("end_date"), where),
        description=d.get("description", ""),
        category_id=d.get("category_id"),
        interval=_int(d.get("interval", 1), "interval", where),
        occurrences=_optional_int(d, "occurrences", where),
    )


def recurring_transfer_from_dict(d: Mapping[str, Any]) -> RecurringTransfer:
    where = f"recurring transfer {d.get('id')}"
    return RecurringTransfer(
        id=_require(d, "id", where),
        amount=_float(_require(d, "amount", where), "amount", where),
        frequency=_enum(RecurringFrequency, _require(d, "frequency", where), where),
        start_date=parse_date(_require(d, "start_date", where), where),
        source_account_id=_require(d, "source_account_id", where),
        destination_account_id=_require(d, "destination_account_id", where),
        source_reserve_id=d.get("source_reserve_id"),
        destination_reserve_id=d.get("destination_reserve_id"),
        end_date=_optional_date(d.get("end_date"), where),
        description=d.get("description", ""),
        interval=_int(d.get("interval", 1), "interval", where),
        occurrences=_optional_int(d, "occurrences", where),
    )


def reimbursement_from_dict(d: Mapping[str, Any]) -> Reimbursement:
    where = f"reimbursement {d.get('id')}"
    return Reimbursement(
        id=_require(d, "id", where),
        transaction_id=_require(d, "transaction_id", where),
        expected_amount=_float(_require(d, "expected_amount", where), "expected_amount", where),
        expected_date=parse_date(_require(d, "expected_date", where), where),
        status=_enum(ReimbursementStatus, d.get("status", "PENDING"), where),
    )


def loan_from_dict(d: Mapping[str, Any]) -> Loan:
    """Loans stored without a monthly payment get the level payment for their terms."""
    where = f"loan {d.get('id')}"
    initial = _float(_require(d, "initial_amount", where), "initial_amount", where)
    term = _int(_require(d, "term_in_months", where), "term_in_months", where)
    rate = _float(d.get("interest_rate", 0.0), "interest_rate", where)
    payment = d.get("monthly_payment")
    return Loan(
        id=_require(d, "id", where),
        name=d.get("name", ""),
        initial_amount=initial,
        term_in_months=term,
        linked_recurring_expense_id=_require(d, "linked_recurring_expense_id", where),
        payments_made_initially=_optional_int(d, "payments_made_initially", where) or 0,
        start_date=_optional_date(d.get("start_date"), where),
        interest_rate=rate,
        monthly_payment=(
            calculate_monthly_payment(initial, rate, term)
            if payment is None
            else _float(payment, "monthly_payment", where)
        ),
    )


def manual_asset_from_dict(d: Mapping[str, Any]) -> ManualAsset:
    where = f"manual asset {d.get('id')}"
    return ManualAsset(
        id=_require(d, "id", where),
        name=_require(d, "name", where),
        value=_float(_require(d, "value", where), "value", where),
        icon=d.get("icon"),
    )


def budget_limit_from_dict(d: Mapping[str, Any]) -> BudgetLimit:
    where = f"budget limit {d.get('category_id')}"
    return BudgetLimit(
        category_id=_require(d, "category_id", where),
        amount=_float(_require(d, "amount", where), "amount", where),
    )


def categorization_rule_from_dict(d: Mapping[str, Any]) -> CategorizationRule:
    where = f"categorization rule {d.get('id')}"
    return CategorizationRule(
        id=_require(d, "id", where),
        keyword=_require(d, "keyword", where),
        category_id=_require(d, "category_id", where),
    )


def validated_transactions(
    transactions: Iterable[Transaction],
    accounts: Tuple[Account, ...],
    categories: Tuple[Category, ...],
    reserves: Tuple[Reserve, ...],
) -> Tuple[Transaction, ...]:
    """Every transaction checked against the loaded entities; the first failure raises."""
    checked = []
    for t in transactions:
        result = validate_transaction(t, accounts, categories, reserves)
        if result.is_left():
            error = result.get_error()
            raise LedgerDataError(f"transaction {t.id}: {error['error']}: {error['message']}")
        checked.append(result.get_or_else(t))
    return tuple(checked)


def load_ledger(path: str) -> Ledger:
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    return ledger_from_dict(data)


def ledger_from_dict(data: Mapping[str, Any]) -> Ledger:
    accounts = tuple(account_from_dict(a) for a in data.get("accounts", ()))
    reserves = tuple(reserve_from_dict(r) for r in data.get("reserves", ()))
    categories = tuple(category_from_dict(c) for c in data.get("categories", ()))
    transactions = validated_transactions(
        (transaction_from_dict(t) for t in data.get("transactions", ())),
        accounts,
        categories,
        reserves,
    )
    return Ledger(
        accounts=accounts,
        reserves=reserves,
        categories=categories,
        transactions=transactions,
        recurring_expenses=tuple(
            recurring_expense_from_dict(r) for r in data.get("recurring_expenses", ())
        ),
        recurring_transfers=tuple(
            recurring_transfer_from_dict(r) for r in data.get("recurring_transfers", ())
        ),
        reimbursements=tuple(reimbursement_from_dict(r) for r in data.get("reimbursements", ())),
        loans=tuple(loan_from_dict(l) for l in data.get("loans", ())),
        manual_assets=tuple(manual_asset_from_dict(a) for a in data.get("manual_assets", ())),
        budget_limits=tuple(budget_limit_from_dict(b) for b in data.get("budget_limits", ())),
        categorization_rules=tuple(
            categorization_rule_from_dict(r) for r in data.get("categorization_rules", ())
        ),
    )


def add_transaction(
    trans: Tuple[Transaction, ...], t: Transaction
) -> Tuple[Transaction, ...]:
    return trans + (t,)


def apply_categorization_rules(
    description: str, rules: Iterable[CategorizationRule]
) -> Optional[str]:
    """Category of the first rule whose keyword appears in the description."""
    if not description:
        return None
    lowered = description.lower()
    for rule in rules:
        if rule.keyword.lower() in lowered:
            return rule.category_id
    return None
