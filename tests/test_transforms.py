import json
from datetime import date, datetime

import pytest

from ledger_engine.domain import (
    AccountType,
    CategorizationRule,
    RecurringFrequency,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from ledger_engine.projection import project_ledger
from ledger_engine.transforms import (
    LedgerDataError,
    add_transaction,
    apply_categorization_rules,
    ledger_from_dict,
    load_ledger,
    loan_from_dict,
    parse_date,
    recurring_expense_from_dict,
    transaction_from_dict,
)

SNAPSHOT = {
    "accounts": [
        {"id": "a1", "name": "Checking", "initial_balance": 100},
        {"id": "card", "name": "Visa", "type": "DEFERRED_DEBIT",
         "linked_account_id": "a1", "debit_day": 15},
    ],
    "reserves": [{"id": "r1", "name": "Trip", "account_id": "a1",
                  "target_amount": 500, "target_date": "2025-08-01"}],
    "categories": [{"id": "food", "name": "Food", "type": "EXPENSE"}],
    "transactions": [
        {"id": "t1", "account_id": "a1", "amount": 42.5, "type": "EXPENSE",
         "date": "2025-03-01", "category_id": "food", "tags": ["weekly", "shop"]},
        {"id": "t2", "account_id": "card", "amount": 10, "type": "EXPENSE",
         "date": "2025-03-02", "effective_date": "2025-04-15", "status": "POTENTIAL"},
    ],
    "recurring_expenses": [{"id": "rent", "account_id": "a1", "amount": 700,
                            "frequency": "MONTHLY", "start_date": "2025-01-01"}],
    "recurring_transfers": [{"id": "tr", "amount": 50, "frequency": "WEEKLY",
                             "start_date": "2025-01-01", "source_account_id": "a1",
                             "destination_account_id": "a1", "destination_reserve_id": "r1"}],
    "reimbursements": [{"id": "rb", "transaction_id": "t1", "expected_amount": 20,
                        "expected_date": "2025-03-20"}],
    "loans": [{"id": "l1", "name": "Car", "initial_amount": 12000, "term_in_months": 12,
               "linked_recurring_expense_id": "rent", "start_date": "2025-01-01"}],
    "manual_assets": [{"id": "m1", "name": "Flat", "value": 150000}],
    "budget_limits": [{"category_id": "food", "amount": 300}],
    "categorization_rules": [{"id": "c1", "keyword": "market", "category_id": "food"}],
}


def test_load_ledger(tmp_path):
    path = tmp_path / "ledger.json"
    path.write_text(json.dumps(SNAPSHOT), encoding="utf-8")

    ledger = load_ledger(str(path))

    assert len(ledger.accounts) == 2
    assert ledger.accounts[1].type is AccountType.DEFERRED_DEBIT
    assert ledger.accounts[0].initial_balance == 100
    t1, t2 = ledger.transactions
    assert t1.effective_date == t1.date == date(2025, 3, 1)
    assert t1.tags == frozenset({"weekly", "shop"})
    assert t1.status is TransactionStatus.REAL
    assert t2.effective_date == date(2025, 4, 15)
    assert t2.status is TransactionStatus.POTENTIAL
    assert ledger.reserves[0].target_date == date(2025, 8, 1)
    assert ledger.recurring_expenses[0].frequency is RecurringFrequency.MONTHLY
    assert ledger.recurring_transfers[0].destination_reserve_id == "r1"
    assert ledger.reimbursements[0].expected_amount == 20
    assert ledger.loans[0].start_date == date(2025, 1, 1)
    assert ledger.manual_assets[0].value == 150000
    assert ledger.budget_limits[0].amount == 300
    assert ledger.categorization_rules[0].keyword == "market"


def test_empty_snapshot():
    ledger = ledger_from_dict({})

    assert ledger.accounts == ()
    assert ledger.transactions == ()


def test_malformed_date_fails_loudly():
    raw = {"id": "t1", "account_id": "a1", "amount": 1, "type": "INCOME", "date": "01/03/2025"}

    with pytest.raises(LedgerDataError, match="transaction t1"):
        transaction_from_dict(raw)


def test_unknown_type_and_missing_field():
    with pytest.raises(LedgerDataError, match="TransactionType"):
        transaction_from_dict(
            {"id": "t1", "account_id": "a1", "amount": 1, "type": "DEBIT", "date": "2025-01-01"}
        )
    with pytest.raises(LedgerDataError, match="account_id"):
        transaction_from_dict({"id": "t1", "amount": 1, "type": "INCOME", "date": "2025-01-01"})


def test_add_transaction_returns_new_tuple():
    t1 = Transaction("t1", "a1", 100, TransactionType.INCOME, date(2025, 9, 1), date(2025, 9, 1))
    t2 = Transaction("t2", "a1", 50, TransactionType.EXPENSE, date(2025, 9, 2), date(2025, 9, 2))

    transactions = (t1,)
    new_transactions = add_transaction(transactions, t2)

    assert len(new_transactions) == 2
    assert transactions == (t1,)


def test_categorization_rules():
    rules = (
        CategorizationRule("c1", "Market", "food"),
        CategorizationRule("c2", "fuel", "car"),
    )

    assert apply_categorization_rules("SUPERMARKET 24", rules) == "food"
    assert apply_categorization_rules("Shell fuel", rules) == "car"
    assert apply_categorization_rules("Cinema", rules) is None
    assert apply_categorization_rules("", rules) is None


@pytest.mark.parametrize(
    "data, match",
    [
        ({"manual_assets": [{"id": "m1", "name": "House"}]}, "manual asset m1: missing field 'value'"),
        ({"manual_assets": [{"id": "m1", "name": "House", "value": "a lot"}]}, "value must be a number"),
        ({"budget_limits": [{"category_id": "food"}]}, "budget limit food: missing field 'amount'"),
        ({"categorization_rules": [{"id": "c1", "keyword": "market"}]}, "categorization rule c1"),
    ],
)
def test_incomplete_entities_fail_loudly(data, match):
    with pytest.raises(LedgerDataError, match=match):
        ledger_from_dict(data)


def test_extra_rule_fields_are_ignored():
    ledger = ledger_from_dict(
        {"categorization_rules": [{"id": "c1", "keyword": "market", "category_id": "food", "note": "x"}]}
    )

    assert ledger.categorization_rules == (CategorizationRule("c1", "market", "food"),)


def test_occurrences_are_whole_numbers():
    raw = {"id": "r1", "account_id": "a1", "amount": 10, "frequency": "MONTHLY",
           "start_date": "2025-01-01", "occurrences": "3"}

    template = recurring_expense_from_dict(raw)
    ledger = project_ledger((), date(2025, 1, 1), recurring_expenses=(template,))

    assert template.occurrences == 3
    assert len(ledger) == 3
    with pytest.raises(LedgerDataError, match="occurrences"):
        recurring_expense_from_dict(dict(raw, occurrences="three"))
    with pytest.raises(LedgerDataError, match="interval"):
        recurring_expense_from_dict(dict(raw, interval=None))


def test_transactions_are_validated_against_the_snapshot():
    data = dict(SNAPSHOT)

    bad_account = dict(data, transactions=[dict(SNAPSHOT["transactions"][0], account_id="ghost")])
    with pytest.raises(LedgerDataError, match="transaction t1: account_not_found"):
        ledger_from_dict(bad_account)

    bad_reserve = dict(data, transactions=[dict(SNAPSHOT["transactions"][0], reserve_id="nope")])
    with pytest.raises(LedgerDataError, match="reserve_not_found"):
        ledger_from_dict(bad_reserve)

    income_category = dict(data, categories=[{"id": "food", "name": "Food", "type": "INCOME"}])
    with pytest.raises(LedgerDataError, match="category_type_mismatch"):
        ledger_from_dict(income_category)


def test_loan_monthly_payment_defaults_to_level_payment():
    raw = {"id": "l1", "initial_amount": 12000, "term_in_months": 12,
           "linked_recurring_expense_id": "rent"}

    assert loan_from_dict(raw).monthly_payment == pytest.approx(1000)
    assert loan_from_dict(dict(raw, interest_rate=5, term_in_months=24)).monthly_payment == pytest.approx(526.46, abs=0.01)
    assert loan_from_dict(dict(raw, monthly_payment=950)).monthly_payment == 950


def test_datetimes_are_narrowed_to_dates():
    parsed = parse_date(datetime(2025, 3, 1, 18, 30), "transaction t1")

    assert parsed == date(2025, 3, 1)
    assert type(parsed) is date
