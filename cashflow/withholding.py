"""Federal income tax withholding for a single paycheck.

Annualizes the paycheck, taxes the annual figure through the progressive
brackets of the supplied table, removes dependent credits and spreads the
result back over the pay periods. Amounts are returned at full precision;
callers round at the paycheck boundary.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable, Optional

from cashflow.money import ZERO
from cashflow.tax_tables import TaxBracket


def calculate_annual_tax(taxable_income: Decimal, brackets: Iterable[TaxBracket]) -> Decimal:
    """Marginal tax: each bracket only taxes the slice of income it covers."""
    if taxable_income <= ZERO:
        return ZERO
    total = ZERO
    for bracket in brackets:
        if taxable_income <= bracket.lower_bound:
            continue
        upper = taxable_income
        if bracket.upper_bound is not None:
            upper = min(taxable_income, bracket.upper_bound)
        taxable_at_bracket = upper - bracket.lower_bound
        if taxable_at_bracket > ZERO:
            total += taxable_at_bracket * bracket.rate
    return total


def calculate_federal_withholding(
    taxable_wages_per_paycheck: Decimal,
    pay_periods_per_year: int,
    standard_deduction: Decimal,
    brackets: Iterable[TaxBracket],
    *,
    deductions_annual: Decimal = ZERO,
    other_income_annual: Decimal = ZERO,
    dependent_credit: Decimal = ZERO,
    dependents_count: int = 0,
    dependent_credit_override: Optional[Decimal] = None,
    extra_withholding_per_paycheck: Decimal = ZERO,
) -> Decimal:
    if pay_periods_per_year <= 0:
        raise ValueError("pay_periods_per_year must be greater than zero.")
    periods = Decimal(pay_periods_per_year)

    annualized_wages = taxable_wages_per_paycheck * periods
    adjusted_income = annualized_wages + other_income_annual
    total_deductions = standard_deduction + deductions_annual
    taxable_income = max(ZERO, adjusted_income - total_deductions)

    annual_tax = calculate_annual_tax(taxable_income, brackets)
    if dependent_credit_override is not None:
        credit = dependent_credit_override
    else:
        credit = dependent_credit * dependents_count
    annual_after_credits = max(ZERO, annual_tax - credit)

    per_paycheck = annual_after_credits / periods
    return max(ZERO, per_paycheck + extra_withholding_per_paycheck)
