from __future__ import annotations

from dataclasses import replace
from typing import Callable, Iterable, List, Optional
from uuid import uuid4

from cashflow.forecast import starting_balances_from_previous
from cashflow.models import (
    Account,
    AppSettings,
    Category,
    MonthSetup,
    MonthSnapshot,
    PaycheckDepositSplit,
)
from cashflow.money import ZERO
from cashflow.payroll_settings import PayrollSettings
from cashflow.schedule import month_bounds

DEFAULT_PAYCHECK_SCHEDULE = "monthly"


def new_month_snapshot(
    month_id: str,
    app_settings: AppSettings,
    previous: MonthSnapshot | None = None,
    id_factory: Callable[[], str] | None = None,
) -> MonthSnapshot:
    """Build a month that has never been opened.

    Balances roll forward from ``previous`` (the latest earlier month) and the
    paycheck setup starts from the payroll settings.
    """
    accounts = list(app_settings.accounts)
    categories = list(app_settings.categories)
    return MonthSnapshot(
        id=month_id,
        accounts=accounts,
        categories=categories,
        starting_balances=starting_balances_from_previous(accounts, previous),
        month_setup=default_month_setup(
            month_id, accounts, categories, app_settings.payroll_settings, id_factory
        ),
    )


def default_month_setup(
    month_id: str,
    accounts: Iterable[Account],
    categories: Iterable[Category],
    payroll_settings: Optional[PayrollSettings] = None,
    id_factory: Callable[[], str] | None = None,
) -> MonthSetup:
    month_start, _ = month_bounds(month_id)
    income_category = next((category.id for category in categories if category.type == "income"), None)
    if payroll_settings is None:
        schedule = DEFAULT_PAYCHECK_SCHEDULE
        anchor = month_start
        category_id = income_category
    else:
        schedule = payroll_settings.pay_cycle
        anchor = payroll_settings.paycheck_anchor_date or month_start
        category_id = payroll_settings.paycheck_category_id or income_category
    return MonthSetup(
        paycheck_schedule=schedule,
        paycheck_anchor_date=anchor,
        paycheck_deposit_splits=normalize_deposit_splits([], accounts, id_factory),
        paycheck_category_id=category_id,
    )


def normalize_deposit_splits(
    splits: Iterable[PaycheckDepositSplit],
    accounts: Iterable[Account],
    id_factory: Callable[[], str] | None = None,
) -> List[PaycheckDepositSplit]:
    """Point every split at a usable cash account and keep a single remainder.

    Only the first remainder split stays a remainder. A lone split becomes the
    remainder, and with no splits at all the whole paycheck goes to the first
    cash account.
    """
    new_id = id_factory or (lambda: str(uuid4()))
    account_list = list(accounts)
    cash_ids = [account.id for account in account_list if account.type != "loan"]
    if cash_ids:
        fallback = cash_ids[0]
    else:
        fallback = account_list[0].id if account_list else ""

    normalized: List[PaycheckDepositSplit] = []
    remainder_assigned = False
    for split in splits:
        account_id = split.account_id if split.account_id in cash_ids else fallback
        if not account_id:
            continue
        is_remainder = split.is_remainder and not remainder_assigned
        remainder_assigned = remainder_assigned or is_remainder
        normalized.append(
            PaycheckDepositSplit(
                id=split.id or new_id(),
                account_id=account_id,
                amount=ZERO if is_remainder else split.amount,
                is_remainder=is_remainder,
            )
        )

    if not normalized:
        if not fallback:
            return []
        return [PaycheckDepositSplit(id=new_id(), account_id=fallback, is_remainder=True)]
    if len(normalized) == 1 and not remainder_assigned:
        return [replace(normalized[0], amount=ZERO, is_remainder=True)]
    return normalized
