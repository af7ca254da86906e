from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Optional, Sequence
from urllib.parse import quote
from uuid import uuid4

from cashflow.models import (
    MonthSetup,
    OneOffAdjustment,
    PaycheckDepositSplit,
    PaycheckEntry,
    RecurringItem,
    Transaction,
)
from cashflow.money import ZERO, coerce_amount, round_cents
from cashflow.schedule import month_bounds, schedule_dates

logger = logging.getLogger(__name__)

SUPPORTED_MODES = {"missing", "regenerate", "reset"}


@dataclass(frozen=True)
class SourceKey:
    """Identifies the rule, date and split that produced a generated transaction.

    The string form joins the populated parts with ':' after percent-encoding
    each part, so an id that itself contains ':' cannot produce the key of a
    different rule.
    """

    kind: str
    rule_id: Optional[str] = None
    date: Optional[date] = None
    sub_index: Optional[str] = None

    def __str__(self) -> str:
        parts = [self.kind, self.rule_id, self.date.isoformat() if self.date else None, self.sub_index]
        return ":".join(quote(part, safe="") for part in parts if part is not None)


@dataclass(frozen=True)
class SplitAllocation:
    split_key: str
    account_id: str
    amount: Decimal


@dataclass(frozen=True)
class GenerationResult:
    transactions: List[Transaction]
    month_setup: MonthSetup
    generated_count: int = 0


def generate_month_transactions(
    month_id: str,
    month_setup: MonthSetup,
    recurring_items: Iterable[RecurringItem],
    existing_transactions: Sequence[Transaction],
    mode: str,
    now: datetime | None = None,
    id_factory: Callable[[], str] | None = None,
) -> GenerationResult:
    normalized_mode = _validate_mode(mode)
    created_at = now or datetime.now(timezone.utc)
    new_id = id_factory or (lambda: str(uuid4()))
    batch_id = new_id()

    def build(key: SourceKey, **fields) -> Transaction:
        return Transaction(
            id=new_id(),
            source="generated",
            source_item_id=str(key),
            generated_batch_id=batch_id,
            created_at=created_at,
            updated_at=created_at,
            **fields,
        )

    generated: Dict[str, Transaction] = {}
    for transaction in (
        _paycheck_transactions(month_id, month_setup, build)
        + _recurring_transactions(month_id, month_setup, recurring_items, build)
        + _one_off_transactions(month_setup.one_offs, build)
    ):
        # keys are unique by construction; a repeat means the later rule wins
        generated[transaction.source_item_id] = transaction
    generated_transactions = list(generated.values())

    if normalized_mode == "reset":
        transactions = generated_transactions
    elif normalized_mode == "regenerate":
        transactions = [
            txn for txn in existing_transactions if txn.source != "generated"
        ] + generated_transactions
    else:
        existing_keys = {
            txn.source_item_id for txn in existing_transactions if txn.source_item_id
        }
        transactions = list(existing_transactions) + [
            txn for txn in generated_transactions if txn.source_item_id not in existing_keys
        ]

    logger.info(
        "Generated %d transactions for %s (mode=%s, %d total, batch %s)",
        len(generated_transactions),
        month_id,
        normalized_mode,
        len(transactions),
        batch_id,
    )
    updated_setup = replace(
        month_setup,
        last_generated_at=created_at,
        generation_version=(month_setup.generation_version or 0) + 1,
    )
    return GenerationResult(
        transactions=transactions,
        month_setup=updated_setup,
        generated_count=len(generated_transactions),
    )


def resolve_paycheck_entries(month_id: str, month_setup: MonthSetup) -> List[PaycheckEntry]:
    if month_setup.paycheck_estimates:
        base_entries = list(month_setup.paycheck_estimates)
    else:
        base_entries = [
            PaycheckEntry(
                id=f"default:{pay_date.isoformat()}",
                date=pay_date,
                amount=month_setup.paycheck_default_amount,
            )
            for pay_date in schedule_dates(
                month_id,
                month_setup.paycheck_schedule,
                month_setup.paycheck_anchor_date,
            )
        ]

    overrides = {entry.override_key: entry for entry in month_setup.paycheck_overrides}
    base_keys = {entry.override_key for entry in base_entries}
    entries = [
        _apply_override(entry, overrides[entry.override_key])
        if entry.override_key in overrides
        else entry
        for entry in base_entries
    ]
    entries.extend(
        entry for entry in month_setup.paycheck_overrides if entry.override_key not in base_keys
    )
    return entries


def split_paycheck(
    amount: Decimal, splits: Iterable[PaycheckDepositSplit]
) -> List[SplitAllocation]:
    """Allocate a paycheck across its deposit splits.

    Fixed splits get their configured amount and the first remainder split
    gets what is left, never below zero. Each allocation carries a key unique
    within the split list, so two splits into one account stay separate.
    """
    eligible = [(key, split) for key, split in _split_keys(splits) if split.account_id]
    allocations = [
        SplitAllocation(key, split.account_id, abs(coerce_amount(split.amount)))
        for key, split in eligible
        if not split.is_remainder and coerce_amount(split.amount) != ZERO
    ]
    remainder = next(((key, split) for key, split in eligible if split.is_remainder), None)
    if remainder is not None:
        fixed_total = sum((allocation.amount for allocation in allocations), ZERO)
        left = round_cents(max(abs(amount) - fixed_total, ZERO))
        if left != ZERO:
            key, split = remainder
            allocations.append(SplitAllocation(key, split.account_id, left))
    return allocations


def signed_amount(item_type: str, amount: Decimal) -> Decimal:
    absolute = abs(coerce_amount(amount))
    if item_type == "income":
        return absolute
    return -absolute


def _paycheck_transactions(month_id: str, month_setup: MonthSetup, build) -> List[Transaction]:
    if not month_setup.paycheck_category_id:
        return []
    transactions: List[Transaction] = []
    for entry in resolve_paycheck_entries(month_id, month_setup):
        if coerce_amount(entry.amount) == ZERO:
            continue
        kind = "bonus" if entry.is_bonus else "paycheck"
        description = entry.description or ("Bonus" if entry.is_bonus else "Paycheck")
        for allocation in split_paycheck(entry.amount, month_setup.paycheck_deposit_splits):
            transactions.append(
                build(
                    SourceKey(kind=kind, date=entry.date, sub_index=allocation.split_key),
                    date=entry.date,
                    amount=allocation.amount,
                    account_id=allocation.account_id,
                    category_id=month_setup.paycheck_category_id,
                    description=description,
                    transaction_type="income",
                )
            )
    return transactions


def _recurring_transactions(
    month_id: str,
    month_setup: MonthSetup,
    recurring_items: Iterable[RecurringItem],
    build,
) -> List[Transaction]:
    overrides = {override.item_id: override.amount for override in month_setup.variable_overrides}
    month_start, _ = month_bounds(month_id)
    transactions: List[Transaction] = []
    for item in recurring_items:
        if not item.enabled or not item.account_id or not item.category_id:
            continue
        amount = overrides.get(item.id, item.default_amount)
        anchor = item.anchor_date or month_start
        for item_date in schedule_dates(month_id, item.cadence, anchor, item.day_rule):
            transactions.append(
                build(
                    SourceKey(kind="recurring", rule_id=item.id, date=item_date),
                    date=item_date,
                    amount=signed_amount(item.type, amount),
                    account_id=item.account_id,
                    transfer_account_id=item.transfer_account_id,
                    category_id=item.category_id,
                    loan_id=item.loan_id,
                    description=item.name,
                    transaction_type=item.type,
                )
            )
    return transactions


def _one_off_transactions(one_offs: Iterable[OneOffAdjustment], build) -> List[Transaction]:
    return [
        build(
            SourceKey(kind="oneoff", rule_id=adjustment.id),
            date=adjustment.date,
            amount=signed_amount(adjustment.type, round_cents(adjustment.amount)),
            account_id=adjustment.account_id,
            transfer_account_id=adjustment.transfer_account_id,
            category_id=adjustment.category_id,
            loan_id=adjustment.loan_id,
            description=adjustment.description or "One-off adjustment",
            transaction_type=adjustment.type,
        )
        for adjustment in one_offs
        if adjustment.account_id and adjustment.category_id
    ]


def _split_keys(
    splits: Iterable[PaycheckDepositSplit],
) -> List[tuple[str, PaycheckDepositSplit]]:
    keyed: List[tuple[str, PaycheckDepositSplit]] = []
    seen: set[str] = set()
    for position, split in enumerate(splits):
        key = split.id or str(position)
        if key in seen:
            key = f"{key}.{position}"
        seen.add(key)
        keyed.append((key, split))
    return keyed


def _apply_override(entry: PaycheckEntry, override: PaycheckEntry) -> PaycheckEntry:
    return replace(
        entry,
        id=override.id,
        amount=override.amount,
        description=override.description or entry.description,
    )


def _validate_mode(mode: str) -> str:
    normalized = (mode or "").strip().lower()
    if normalized not in SUPPORTED_MODES:
        raise ValueError("Generation mode must be missing, regenerate, or reset.")
    return normalized
