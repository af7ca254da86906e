from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional

from cashflow.models import Account, GainLossHistoryEntry, MonthSnapshot, StartingBalance
from cashflow.money import ZERO, coerce_amount
from cashflow.schedule import format_month_id, month_range, parse_month_id, previous_month_id


@dataclass(frozen=True)
class GainLossTotals:
    cash: Decimal = ZERO
    investments: Decimal = ZERO
    cash_and_investments: Decimal = ZERO

    def __sub__(self, other: "GainLossTotals") -> "GainLossTotals":
        return GainLossTotals(
            cash=self.cash - other.cash,
            investments=self.investments - other.investments,
            cash_and_investments=self.cash_and_investments - other.cash_and_investments,
        )


@dataclass(frozen=True)
class MonthlyGainLoss:
    month_id: str
    month_over_month: GainLossTotals
    year_to_date: GainLossTotals


@dataclass(frozen=True)
class GainLossReport:
    month_id: str
    month_over_month: GainLossTotals
    year_to_date: GainLossTotals
    monthly: List[MonthlyGainLoss] = field(default_factory=list)


def is_all_zero(balances: Iterable[StartingBalance]) -> bool:
    return all(coerce_amount(balance.amount) == ZERO for balance in balances)


def resolve_balances(
    snapshot: Optional[MonthSnapshot],
    history_entry: Optional[GainLossHistoryEntry],
) -> List[StartingBalance]:
    """Pick the opening balances that represent a month.

    A snapshot with real starting balances wins. Months that were never set up
    in the app (or only have zero balances) fall back to balances the user
    recorded by hand; with neither, the month counts as all zero.
    """
    history_balances = list(history_entry.balances) if history_entry else []
    if snapshot is None:
        return history_balances
    snapshot_balances = list(snapshot.starting_balances)
    if not is_all_zero(snapshot_balances):
        return snapshot_balances
    return history_balances or snapshot_balances


def classify_totals(accounts: Iterable[Account], balances: Iterable[StartingBalance]) -> GainLossTotals:
    by_account: Dict[str, Decimal] = {}
    for balance in balances:
        by_account[balance.account_id] = coerce_amount(balance.amount)

    cash = ZERO
    investments = ZERO
    for account in accounts:
        if account.type == "loan":
            continue
        value = by_account.get(account.id, ZERO)
        if account.is_cash:
            cash += value
        elif account.is_investment:
            investments += value
    return GainLossTotals(cash=cash, investments=investments, cash_and_investments=cash + investments)


def calculate_gain_loss(
    month_id: str,
    accounts: Iterable[Account],
    snapshots: Mapping[str, MonthSnapshot],
    history: Iterable[GainLossHistoryEntry] = (),
) -> GainLossReport:
    account_list = list(accounts)
    history_by_month = {entry.month_id: entry for entry in history}
    totals_cache: Dict[str, GainLossTotals] = {}

    def totals_for(target_month: str) -> GainLossTotals:
        if target_month not in totals_cache:
            balances = resolve_balances(
                snapshots.get(target_month), history_by_month.get(target_month)
            )
            totals_cache[target_month] = classify_totals(account_list, balances)
        return totals_cache[target_month]

    year, _ = parse_month_id(month_id)
    baseline_id = format_month_id(year, 1)
    baseline = totals_for(baseline_id)

    monthly = [
        MonthlyGainLoss(
            month_id=current,
            month_over_month=totals_for(current) - totals_for(previous_month_id(current)),
            year_to_date=totals_for(current) - baseline,
        )
        for current in month_range(baseline_id, month_id)
    ]
    current_row = monthly[-1]
    return GainLossReport(
        month_id=month_id,
        month_over_month=current_row.month_over_month,
        year_to_date=current_row.year_to_date,
        monthly=monthly,
    )
