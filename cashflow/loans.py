from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Iterable, List

from cashflow.models import Loan, LoanPaymentRecord, Transaction
from cashflow.money import ZERO, coerce_amount, round_cents
from cashflow.schedule import month_id_for, parse_month_id

logger = logging.getLogger(__name__)

MONTHS_PER_YEAR = Decimal("12")
HUNDRED = Decimal("100")


def loan_payments_by_loan(month_id: str, transactions: Iterable[Transaction]) -> Dict[str, Decimal]:
    payments: Dict[str, Decimal] = {}
    for transaction in transactions:
        if not transaction.loan_id or month_id_for(transaction.date) != month_id:
            continue
        amount = coerce_amount(transaction.amount)
        if amount >= ZERO:
            continue
        payments[transaction.loan_id] = payments.get(transaction.loan_id, ZERO) + abs(amount)
    return payments


def apply_loan_payments(
    month_id: str,
    loans: Iterable[Loan],
    transactions: Iterable[Transaction],
    now: datetime | None = None,
) -> List[Loan]:
    """Accrue a month of interest and apply that month's payments to each loan.

    Applying the same month again only applies the difference from the
    previously recorded payment and interest, so re-running after editing
    transactions does not double count.
    """
    parse_month_id(month_id)
    updated_at = now or datetime.now(timezone.utc)
    payments = loan_payments_by_loan(month_id, transactions)

    updated: List[Loan] = []
    for loan in loans:
        paid = payments.get(loan.id, ZERO)
        existing = next(
            (record for record in loan.payment_history if record.month_id == month_id), None
        )
        previous_paid = existing.amount if existing else ZERO
        previous_interest = existing.interest_accrued if existing else ZERO
        if existing and existing.balance_before is not None:
            balance_before = existing.balance_before
        else:
            balance_before = loan.current_balance

        monthly_interest = round_cents(
            balance_before * (coerce_amount(loan.interest_rate) / HUNDRED) / MONTHS_PER_YEAR
        )
        new_balance = max(
            ZERO,
            loan.current_balance + (monthly_interest - previous_interest) - (paid - previous_paid),
        )
        record = LoanPaymentRecord(
            month_id=month_id,
            amount=round_cents(paid),
            interest_accrued=monthly_interest,
            balance_before=round_cents(balance_before),
            balance_after=round_cents(new_balance),
        )
        if existing:
            history = [record if item.month_id == month_id else item for item in loan.payment_history]
        else:
            history = list(loan.payment_history) + [record]
        logger.debug(
            "Loan %s %s: paid %s, interest %s, balance %s -> %s",
            loan.id,
            month_id,
            record.amount,
            monthly_interest,
            loan.current_balance,
            record.balance_after,
        )
        updated.append(
            replace(
                loan,
                current_balance=round_cents(new_balance),
                payment_history=history,
                updated_at=updated_at,
            )
        )
    return updated
