from __future__ import annotations

from typing import Any

from cashflow.tax_tables import FILING_STATUSES, TaxTableSet, load_tax_table_set


def tax_table_data(**overrides: Any) -> dict:
    brackets = [
        {"lowerBound": 0, "upperBound": 10000, "rate": "0.10"},
        {"lowerBound": 10000, "upperBound": None, "rate": "0.20"},
    ]
    data = {
        "tax_year": 2024,
        "schema_version": 1,
        "federal_income_tax_brackets": {status: brackets for status in FILING_STATUSES},
        "standard_deduction": {status: 0 for status in FILING_STATUSES},
        "dependent_credit": {"per_dependent_credit_amount": 2000},
        "federal_supplemental_withholding_rate": "0.22",
        "fica": {
            "ss_rate": "0.062",
            "medicare_rate": "0.0145",
            "ss_wage_base": 168600,
            "additional_medicare_rate": "0.009",
            "additional_medicare_threshold": {
                "single": 200000,
                "married_joint": 250000,
                "head_of_household": 200000,
            },
        },
        "retirement": {"k401_employee_max": 23000, "k401_catch_up_max": 7500},
    }
    data.update(overrides)
    return data


def tax_table(**overrides: Any) -> TaxTableSet:
    return load_tax_table_set(tax_table_data(**overrides))


def flat_tax_table(rate: str, **overrides: Any) -> TaxTableSet:
    brackets = [{"lowerBound": 0, "upperBound": None, "rate": rate}]
    return tax_table(
        federal_income_tax_brackets={status: brackets for status in FILING_STATUSES},
        **overrides,
    )
