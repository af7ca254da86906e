"""Payroll estimation for a month.

Every pay event of the year up to the requested month is replayed in date
order because the 401(k) limit, the Social Security wage base and the
additional Medicare threshold all depend on what was paid earlier in the year.
The running totals live in an explicit ``YearToDate`` record that each step
receives and returns.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Iterable, List, Mapping, Optional, Sequence

from cashflow.models import PaycheckEntry
from cashflow.money import ZERO, round_cents
from cashflow.payroll_settings import (
    BonusEvent,
    PayrollConfigurationError,
    PayrollSettings,
    load_payroll_settings,
)
from cashflow.schedule import (
    format_month_id,
    normalize_cadence,
    parse_month_id,
    pay_periods_per_year,
    schedule_dates,
)
from cashflow.state_withholding import FlatRateStateWithholding, StateWithholding
from cashflow.tax_tables import TaxBracket, TaxTableSet, load_tax_table_set
from cashflow.withholding import calculate_federal_withholding

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")


@dataclass(frozen=True)
class PayEvent:
    id: str
    date: date
    is_bonus: bool = False
    bonus_method: Optional[str] = None
    description: Optional[str] = None
    gross_amount: Optional[Decimal] = None


@dataclass(frozen=True)
class YearToDate:
    gross: Decimal = ZERO
    taxable_wages: Decimal = ZERO
    k401_contribution: Decimal = ZERO
    ss_wages: Decimal = ZERO
    medicare_wages: Decimal = ZERO
    federal_withholding: Decimal = ZERO
    fica_withholding: Decimal = ZERO
    net: Decimal = ZERO


@dataclass(frozen=True)
class PaycheckResult:
    id: str
    date: date
    gross: Decimal
    k401_contribution: Decimal
    pre_tax_benefits: Decimal
    taxable_wages: Decimal
    federal_withholding: Decimal
    state_withholding: Decimal
    ss_withholding: Decimal
    medicare_withholding: Decimal
    additional_medicare_withholding: Decimal
    fica_withholding: Decimal
    post_tax_deductions: Decimal
    net: Decimal
    is_bonus: bool
    ytd: YearToDate
    bonus_method: Optional[str] = None
    description: Optional[str] = None


@dataclass(frozen=True)
class PayrollContext:
    settings: PayrollSettings
    tax_tables: TaxTableSet
    pay_periods_per_year: int
    state_withholding: StateWithholding
    brackets: List[TaxBracket] = field(default_factory=list)
    standard_deduction: Decimal = ZERO
    k401_annual_max: Decimal = ZERO
    ss_wage_base: Decimal = ZERO
    additional_medicare_threshold: Decimal = ZERO

    @classmethod
    def build(
        cls,
        schedule: str,
        settings: PayrollSettings,
        tax_tables: TaxTableSet,
        state_withholding: StateWithholding | None = None,
    ) -> "PayrollContext":
        status = settings.filing_status
        k401 = settings.k401
        catch_up = ZERO
        if k401.catch_up_enabled:
            catch_up = (
                k401.catch_up_amount_override
                if k401.catch_up_amount_override is not None
                else tax_tables.retirement.k401_catch_up_max
            )
        fica = settings.fica
        ss_wage_base = (
            fica.ss_wage_base_override
            if fica.ss_wage_base_override is not None
            else tax_tables.fica.ss_wage_base
        )
        threshold = (
            fica.additional_medicare_threshold_override
            if fica.additional_medicare_threshold_override is not None
            else tax_tables.fica.threshold_for(status)
        )
        return cls(
            settings=settings,
            tax_tables=tax_tables,
            pay_periods_per_year=pay_periods_per_year(schedule),
            state_withholding=state_withholding
            or FlatRateStateWithholding(settings.state_withholding_flat_rate),
            brackets=list(tax_tables.federal_income_tax_brackets.for_status(status)),
            standard_deduction=tax_tables.standard_deduction.for_status(status),
            k401_annual_max=tax_tables.retirement.k401_employee_max + catch_up,
            ss_wage_base=ss_wage_base,
            additional_medicare_threshold=threshold,
        )


def calculate_payroll_for_month(
    month_id: str,
    schedule: str,
    anchor_date: date | None,
    payroll_settings: PayrollSettings | Mapping[str, Any],
    tax_tables: TaxTableSet | Mapping[str, Any],
    state_withholding: StateWithholding | None = None,
) -> List[PaycheckResult]:
    settings = load_payroll_settings(payroll_settings)
    tables = load_tax_table_set(tax_tables)
    context = PayrollContext.build(schedule, settings, tables, state_withholding)
    events = build_pay_events(month_id, schedule, anchor_date, settings.bonus_events)

    ytd = YearToDate()
    results: List[PaycheckResult] = []
    for event in events:
        result, ytd = process_pay_event(event, ytd, context)
        if format_month_id(event.date.year, event.date.month) == month_id:
            results.append(result)

    logger.debug(
        "Payroll for %s: %d events replayed, %d paychecks in month, ytd net %s",
        month_id,
        len(events),
        len(results),
        ytd.net,
    )
    return results


def build_pay_events(
    month_id: str,
    schedule: str,
    anchor_date: date | None,
    bonus_events: Iterable[BonusEvent] = (),
) -> List[PayEvent]:
    year, month = parse_month_id(month_id)
    normalized = normalize_cadence(schedule)
    if anchor_date is None and normalized != "semimonthly":
        raise PayrollConfigurationError(
            f"A paycheck anchor date is required for {normalized} pay schedules."
        )

    events: List[PayEvent] = []
    for current_month in range(1, month + 1):
        for pay_date in schedule_dates(format_month_id(year, current_month), normalized, anchor_date):
            events.append(PayEvent(id=f"regular:{pay_date.isoformat()}", date=pay_date))

    for bonus in bonus_events:
        if bonus.date.year != year or bonus.date.month > month:
            continue
        events.append(
            PayEvent(
                id=f"bonus:{bonus.id}",
                date=bonus.date,
                is_bonus=True,
                bonus_method=bonus.method,
                description=bonus.description or "Bonus",
                gross_amount=bonus.gross_amount,
            )
        )

    # sorted() is stable, so bonuses keep their configured order on a shared date
    return sorted(events, key=lambda event: (event.date, event.is_bonus))


def process_pay_event(
    event: PayEvent, ytd: YearToDate, context: PayrollContext
) -> tuple[PaycheckResult, YearToDate]:
    settings = context.settings
    is_bonus = event.is_bonus

    if is_bonus:
        gross = round_cents(event.gross_amount or ZERO)
    else:
        gross = round_cents(settings.salary_annual / Decimal(context.pay_periods_per_year))

    k401_contribution = ZERO if is_bonus else _k401_contribution(gross, ytd, context)
    pre_tax_benefits = ZERO if is_bonus else settings.benefits.pre_tax_benefits_per_paycheck
    taxable_wages = max(ZERO, gross - k401_contribution - pre_tax_benefits)

    federal = round_cents(_federal_withholding(event, taxable_wages, context))
    ss, medicare, additional_medicare = _fica_withholding(gross, ytd, context)
    fica_total = ss + medicare + additional_medicare
    state = round_cents(
        context.state_withholding.compute(gross, taxable_wages, settings.filing_status, event.date)
    )
    post_tax = ZERO if is_bonus else settings.benefits.post_tax_deductions_per_paycheck

    net = (
        gross
        - k401_contribution
        - pre_tax_benefits
        - federal
        - state
        - fica_total
        - post_tax
    )

    next_ytd = YearToDate(
        gross=ytd.gross + gross,
        taxable_wages=ytd.taxable_wages + taxable_wages,
        k401_contribution=ytd.k401_contribution + k401_contribution,
        ss_wages=ytd.ss_wages + gross,
        medicare_wages=ytd.medicare_wages + gross,
        federal_withholding=ytd.federal_withholding + federal,
        fica_withholding=ytd.fica_withholding + fica_total,
        net=ytd.net + net,
    )
    result = PaycheckResult(
        id=event.id,
        date=event.date,
        gross=gross,
        k401_contribution=k401_contribution,
        pre_tax_benefits=pre_tax_benefits,
        taxable_wages=taxable_wages,
        federal_withholding=federal,
        state_withholding=state,
        ss_withholding=ss,
        medicare_withholding=medicare,
        additional_medicare_withholding=additional_medicare,
        fica_withholding=fica_total,
        post_tax_deductions=post_tax,
        net=net,
        is_bonus=is_bonus,
        ytd=next_ytd,
        bonus_method=event.bonus_method,
        description=event.description,
    )
    return result, next_ytd


def paycheck_estimates(results: Sequence[PaycheckResult]) -> List[PaycheckEntry]:
    return [
        PaycheckEntry(
            id=f"estimate:{result.id}",
            date=result.date,
            amount=round_cents(result.net),
            is_bonus=result.is_bonus,
            description=result.description or ("Bonus" if result.is_bonus else "Paycheck"),
        )
        for result in results
    ]


def _k401_contribution(gross: Decimal, ytd: YearToDate, context: PayrollContext) -> Decimal:
    k401 = context.settings.k401
    if not k401.enabled:
        return ZERO
    if k401.is_percent:
        desired = round_cents(gross * (k401.contribution_value / HUNDRED))
    else:
        desired = round_cents(k401.contribution_value)
    if not k401.enforce_annual_max:
        return desired
    remaining = max(ZERO, context.k401_annual_max - ytd.k401_contribution)
    return min(desired, remaining)


def _federal_withholding(event: PayEvent, taxable_wages: Decimal, context: PayrollContext) -> Decimal:
    settings = context.settings
    if event.is_bonus and event.bonus_method == "supplemental_flat":
        rate = context.tax_tables.federal_supplemental_withholding_rate
        if rate is None:
            raise PayrollConfigurationError(
                "Tax table has no federal_supplemental_withholding_rate for "
                f"supplemental bonus {event.id}."
            )
        return taxable_wages * rate
    return calculate_federal_withholding(
        taxable_wages,
        context.pay_periods_per_year,
        context.standard_deduction,
        context.brackets,
        deductions_annual=settings.deductions_annual,
        other_income_annual=settings.other_income_annual,
        dependent_credit=context.tax_tables.dependent_credit.per_dependent_credit_amount,
        dependents_count=settings.dependents_count,
        dependent_credit_override=settings.dependent_credit_override,
        extra_withholding_per_paycheck=(
            ZERO if event.is_bonus else settings.extra_withholding_per_paycheck
        ),
    )


def _fica_withholding(
    gross: Decimal, ytd: YearToDate, context: PayrollContext
) -> tuple[Decimal, Decimal, Decimal]:
    if not context.settings.fica.include_fica:
        return ZERO, ZERO, ZERO
    fica = context.tax_tables.fica

    ss_remaining = max(ZERO, context.ss_wage_base - ytd.ss_wages)
    ss = round_cents(min(gross, ss_remaining) * fica.ss_rate)
    medicare = round_cents(gross * fica.medicare_rate)

    threshold = context.additional_medicare_threshold
    above_after = max(ZERO, ytd.medicare_wages + gross - threshold)
    above_before = max(ZERO, ytd.medicare_wages - threshold)
    additional = round_cents((above_after - above_before) * fica.additional_medicare_rate)
    return ss, medicare, additional
