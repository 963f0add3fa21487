"""
Engine settings.
Everything the dashboard used to read from its app settings is passed in
explicitly through EngineSettings; nothing here reads files or the clock.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Mapping, Tuple

from ledger_engine.domain import LedgerDataError


class AmortizationModel(str, Enum):
    STRAIGHT_LINE = "STRAIGHT_LINE"  # remaining = initial * (1 - payments / term)
    ANNUITY = "ANNUITY"              # level-payment schedule using loan.interest_rate


@dataclass(frozen=True)
class EngineSettings:
    horizon_months: int = 12
    include_simulation: bool = False

    # savings insight
    included_income_category_ids: Tuple[str, ...] = ()
    excluded_expense_category_ids: Tuple[str, ...] = ()

    # forecast scope, empty means every account
    included_account_ids: Tuple[str, ...] = ()
    enable_deferred_debit: bool = False

    upcoming_window_days: int = 7
    upcoming_count: int = 3
    budget_alert_threshold: float = 80.0

    amortization_model: AmortizationModel = AmortizationModel.STRAIGHT_LINE

    # tolerance for main balance = account balance - reserves
    epsilon: float = 0.01


DEFAULT_SETTINGS = EngineSettings()

_TUPLE_FIELDS = (
    "included_income_category_ids",
    "excluded_expense_category_ids",
    "included_account_ids",
)


def settings_from_dict(data: Mapping[str, Any]) -> EngineSettings:
    known = {f.name for f in fields(EngineSettings)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise LedgerDataError(f"Unknown settings: {', '.join(unknown)}")

    values = dict(data)
    for name in _TUPLE_FIELDS:
        if name in values:
            values[name] = tuple(values[name] or ())
    if "amortization_model" in values:
        try:
            values["amortization_model"] = AmortizationModel(values["amortization_model"])
        except ValueError as e:
            raise LedgerDataError(
                f"Unknown amortization model {values['amortization_model']!r}"
            ) from e
    if values.get("horizon_months", 1) < 1:
        raise LedgerDataError("horizon_months must be at least 1")

    return EngineSettings(**values)
