from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any, List, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from cashflow.tax_tables import FilingStatus, format_validation_errors

PayCycle = Literal["weekly", "biweekly", "semimonthly", "monthly"]
ContributionMode = Literal["percent", "fixed", "fixed_per_paycheck"]
BonusWithholdingMethod = Literal["supplemental_flat", "regular_annualized"]


class PayrollConfigurationError(ValueError):
    """Raised when payroll inputs cannot produce a trustworthy estimate."""


class _SettingsModel(BaseModel):
    model_config = ConfigDict(frozen=True, allow_inf_nan=False, populate_by_name=True)


class Payroll401kSettings(_SettingsModel):
    enabled: bool = False
    contribution_mode: ContributionMode = "percent"
    contribution_value: Decimal = Field(default=Decimal("0"), ge=0)
    enforce_annual_max: bool = True
    catch_up_enabled: bool = False
    catch_up_amount_override: Optional[Decimal] = Field(default=None, ge=0)

    @property
    def is_percent(self) -> bool:
        return self.contribution_mode == "percent"


class PayrollBenefitsSettings(_SettingsModel):
    pre_tax_benefits_per_paycheck: Decimal = Field(default=Decimal("0"), ge=0)
    post_tax_deductions_per_paycheck: Decimal = Field(default=Decimal("0"), ge=0)


class PayrollFicaSettings(_SettingsModel):
    include_fica: bool = True
    ss_wage_base_override: Optional[Decimal] = Field(default=None, ge=0)
    additional_medicare_threshold_override: Optional[Decimal] = Field(default=None, ge=0)


class BonusEvent(_SettingsModel):
    id: str
    date: date
    gross_amount: Decimal = Field(ge=0)
    method: BonusWithholdingMethod = "supplemental_flat"
    description: Optional[str] = None


class PayrollSettings(_SettingsModel):
    tax_year: int
    filing_status: FilingStatus = "single"
    pay_cycle: PayCycle = "biweekly"
    paycheck_anchor_date: Optional[date] = None
    paycheck_category_id: Optional[str] = None
    salary_annual: Decimal = Field(default=Decimal("0"), ge=0)
    dependents_count: int = Field(default=0, ge=0)
    dependent_credit_override: Optional[Decimal] = Field(default=None, ge=0)
    other_income_annual: Decimal = Decimal("0")
    deductions_annual: Decimal = Field(default=Decimal("0"), ge=0)
    extra_withholding_per_paycheck: Decimal = Decimal("0")
    state_withholding_flat_rate: Decimal = Field(default=Decimal("0"), ge=0)
    k401: Payroll401kSettings = Field(default_factory=Payroll401kSettings, alias="401k")
    benefits: PayrollBenefitsSettings = Field(default_factory=PayrollBenefitsSettings)
    fica: PayrollFicaSettings = Field(default_factory=PayrollFicaSettings)
    bonus_events: List[BonusEvent] = Field(default_factory=list)


def load_payroll_settings(data: Mapping[str, Any] | PayrollSettings) -> PayrollSettings:
    if isinstance(data, PayrollSettings):
        return data
    try:
        return PayrollSettings.model_validate(data)
    except ValidationError as exc:
        raise PayrollConfigurationError(
            "Invalid payroll settings: " + "; ".join(format_validation_errors(exc))
        ) from exc
