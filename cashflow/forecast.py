from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import replace
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Sequence

from cashflow.models import (
    Account,
    ForecastPoint,
    ForecastSummary,
    MonthSnapshot,
    StartingBalance,
    Transaction,
)
from cashflow.money import ZERO, coerce_amount, round_cents
from cashflow.schedule import iter_month_days

logger = logging.getLogger(__name__)


def calculate_forecast(snapshot: MonthSnapshot) -> List[ForecastPoint]:
    starting = {balance.account_id: coerce_amount(balance.amount) for balance in snapshot.starting_balances}
    balances: Dict[str, Decimal] = {
        account.id: starting.get(account.id, ZERO) for account in snapshot.accounts
    }
    transactions_by_day = _group_by_day(snapshot.transactions)

    points: List[ForecastPoint] = []
    for day in iter_month_days(snapshot.id):
        for transaction in transactions_by_day.get(day, []):
            _apply_transaction(balances, transaction)
        points.append(
            ForecastPoint(
                date=day,
                balances=dict(balances),
                total_cash=cash_total(snapshot.accounts, balances),
            )
        )
    return points


def starting_balances_from_previous(
    accounts: Iterable[Account], previous: MonthSnapshot | None
) -> List[StartingBalance]:
    """Opening balances for a new month, carried from the closing day of ``previous``.

    The earlier month is replayed against the current account list, so accounts
    added since then open at zero. Without an earlier month every account opens
    at zero.
    """
    account_list = list(accounts)
    if previous is None:
        return [StartingBalance(account_id=account.id, amount=ZERO) for account in account_list]
    closing = calculate_forecast(replace(previous, accounts=account_list))[-1].balances
    return [
        StartingBalance(account_id=account.id, amount=round_cents(closing.get(account.id, ZERO)))
        for account in account_list
    ]


def cash_total(accounts: Iterable[Account], balances: Dict[str, Decimal]) -> Decimal:
    return sum(
        (balances.get(account.id, ZERO) for account in accounts if account.is_cash),
        ZERO,
    )


def forecast_summary(points: Sequence[ForecastPoint]) -> ForecastSummary:
    if not points:
        return ForecastSummary(
            projected_end_balance=ZERO,
            lowest_projected_balance=ZERO,
            lowest_balance_date=None,
        )
    lowest = min(points, key=lambda point: point.total_cash)
    return ForecastSummary(
        projected_end_balance=points[-1].total_cash,
        lowest_projected_balance=lowest.total_cash,
        lowest_balance_date=lowest.date,
    )


def _group_by_day(transactions: Iterable[Transaction]) -> Dict[date, List[Transaction]]:
    grouped: Dict[date, List[Transaction]] = defaultdict(list)
    for transaction in transactions:
        grouped[transaction.date].append(transaction)
    return grouped


def _apply_transaction(balances: Dict[str, Decimal], transaction: Transaction) -> None:
    amount = coerce_amount(transaction.amount)
    if transaction.is_transfer and transaction.transfer_account_id:
        moved = abs(amount)
        _adjust(balances, transaction.account_id, -moved, transaction)
        _adjust(balances, transaction.transfer_account_id, moved, transaction)
        return
    _adjust(balances, transaction.account_id, amount, transaction)


def _adjust(
    balances: Dict[str, Decimal], account_id: str, amount: Decimal, transaction: Transaction
) -> None:
    if account_id not in balances:
        logger.debug(
            "Skipping transaction %s for unknown account %s", transaction.id, account_id
        )
        return
    balances[account_id] += amount
