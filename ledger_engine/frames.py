from datetime import date
from typing import Iterable

import pandas as pd

from ledger_engine.balances import LedgerIndex
from ledger_engine.domain import Account, ForecastPoint, Transaction


def forecast_frame(points: Iterable[ForecastPoint]) -> pd.DataFrame:
    """One row per forecast month, one column per account plus the total."""
    rows = []
    for p in points:
        row = {"month": pd.Timestamp(p.month), "total_balance": p.total_balance}
        row.update({f"account:{k}": v for k, v in p.balances.items()})
        row.update({f"reserve:{k}": v for k, v in p.reserve_balances.items()})
        rows.append(row)
    df = pd.DataFrame(rows) if rows else pd.DataFrame(columns=["month", "total_balance"])
    return df.set_index("month")


def balances_frame(
    accounts: Iterable[Account], transactions: Iterable[Transaction], as_of: date
) -> pd.DataFrame:
    index = LedgerIndex(transactions)
    rows = [
        {
            "account_id": a.id,
            "name": a.name,
            "type": a.type.value,
            "balance": index.account_balance(a, as_of),
        }
        for a in accounts
    ]
    return pd.DataFrame(rows, columns=["account_id", "name", "type", "balance"])


def transactions_frame(transactions: Iterable[Transaction]) -> pd.DataFrame:
    rows = [
        {
            "id": t.id,
            "account_id": t.account_id,
            "date": pd.Timestamp(t.date),
            "effective_date": pd.Timestamp(t.effective_date),
            "amount": t.signed_amount,
            "status": t.status.value,
            "category_id": t.category_id,
            "reserve_id": t.reserve_id,
            "is_simulation": t.is_simulation,
        }
        for t in transactions
    ]
    df = pd.DataFrame(
        rows,
        columns=[
            "id", "account_id", "date", "effective_date", "amount",
            "status", "category_id", "reserve_id", "is_simulation",
        ],
    )
    return df.sort_values(["effective_date", "id"]).reset_index(drop=True)
