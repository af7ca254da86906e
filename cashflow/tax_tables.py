"""External tax table data.

Tax tables are supplied by the user as JSON and are treated as read-only
reference data. Everything the payroll engine needs is required here; a table
that fails validation is a configuration fault and is reported with every
problem found, so the caller can ask for a corrected table.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, List, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

TAX_TABLE_SCHEMA_VERSION = 1

FilingStatus = Literal["single", "married_joint", "head_of_household"]
FILING_STATUSES: tuple[FilingStatus, ...] = ("single", "married_joint", "head_of_household")


class TaxTableError(ValueError):
    """Raised when a tax table is missing fields or carries invalid values."""

    def __init__(self, errors: List[str]) -> None:
        self.errors = list(errors)
        super().__init__("Invalid tax table: " + "; ".join(self.errors))


class _TableModel(BaseModel):
    model_config = ConfigDict(frozen=True, allow_inf_nan=False, populate_by_name=True)


class TaxBracket(_TableModel):
    lower_bound: Decimal = Field(alias="lowerBound", ge=0)
    upper_bound: Optional[Decimal] = Field(alias="upperBound")
    rate: Decimal = Field(ge=0)


class FilingStatusBrackets(_TableModel):
    single: List[TaxBracket] = Field(min_length=1)
    married_joint: List[TaxBracket] = Field(min_length=1)
    head_of_household: List[TaxBracket] = Field(min_length=1)

    @field_validator("single", "married_joint", "head_of_household")
    @classmethod
    def _check_contiguous(cls, brackets: List[TaxBracket]) -> List[TaxBracket]:
        for index, bracket in enumerate(brackets):
            is_last = index == len(brackets) - 1
            if bracket.upper_bound is None:
                if not is_last:
                    raise ValueError("only the last bracket may have an open upperBound")
                continue
            if bracket.upper_bound <= bracket.lower_bound:
                raise ValueError(f"bracket {index} upperBound must exceed lowerBound")
            if not is_last and brackets[index + 1].lower_bound != bracket.upper_bound:
                raise ValueError(
                    f"bracket {index + 1} lowerBound must equal bracket {index} upperBound"
                )
        return brackets

    def for_status(self, filing_status: FilingStatus) -> List[TaxBracket]:
        return getattr(self, filing_status)


class FilingStatusAmounts(_TableModel):
    single: Decimal
    married_joint: Decimal
    head_of_household: Decimal

    def for_status(self, filing_status: FilingStatus) -> Decimal:
        return getattr(self, filing_status)


class DependentCreditRule(_TableModel):
    per_dependent_credit_amount: Decimal = Field(ge=0)


class FicaConfig(_TableModel):
    ss_rate: Decimal = Field(ge=0)
    medicare_rate: Decimal = Field(ge=0)
    ss_wage_base: Decimal = Field(ge=0)
    additional_medicare_rate: Decimal = Field(ge=0)
    additional_medicare_threshold: Union[Decimal, FilingStatusAmounts]

    def threshold_for(self, filing_status: FilingStatus) -> Decimal:
        if isinstance(self.additional_medicare_threshold, FilingStatusAmounts):
            return self.additional_medicare_threshold.for_status(filing_status)
        return self.additional_medicare_threshold


class RetirementLimits(_TableModel):
    k401_employee_max: Decimal = Field(ge=0)
    k401_catch_up_max: Decimal = Field(ge=0)


class TaxTableSet(_TableModel):
    tax_year: int
    schema_version: int = TAX_TABLE_SCHEMA_VERSION
    updated_at: Optional[datetime] = None
    federal_income_tax_brackets: FilingStatusBrackets
    standard_deduction: FilingStatusAmounts
    dependent_credit: DependentCreditRule
    federal_supplemental_withholding_rate: Optional[Decimal] = Field(default=None, ge=0)
    fica: FicaConfig
    retirement: RetirementLimits


def load_tax_table_set(data: Mapping[str, Any] | TaxTableSet) -> TaxTableSet:
    if isinstance(data, TaxTableSet):
        return data
    if not isinstance(data, Mapping):
        raise TaxTableError(["Tax table must be an object."])
    try:
        return TaxTableSet.model_validate(data)
    except ValidationError as exc:
        raise TaxTableError(format_validation_errors(exc)) from exc


def format_validation_errors(exc: ValidationError) -> List[str]:
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"])
        messages.append(f"{location}: {error['msg']}" if location else error["msg"])
    return messages
