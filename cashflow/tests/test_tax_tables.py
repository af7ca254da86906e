import unittest
from decimal import Decimal

from cashflow.tax_tables import FILING_STATUSES, TaxTableError, load_tax_table_set
from cashflow.tests.helpers import tax_table, tax_table_data


def brackets_for_all(brackets):
    return {status: brackets for status in FILING_STATUSES}


class TaxTableLoadingTests(unittest.TestCase):
    def test_loads_complete_table(self) -> None:
        table = tax_table()

        self.assertEqual(table.tax_year, 2024)
        self.assertEqual(len(table.federal_income_tax_brackets.for_status("married_joint")), 2)
        self.assertIsNone(table.federal_income_tax_brackets.single[-1].upper_bound)
        self.assertEqual(table.fica.threshold_for("married_joint"), Decimal("250000"))
        self.assertEqual(table.federal_supplemental_withholding_rate, Decimal("0.22"))

    def test_scalar_additional_medicare_threshold(self) -> None:
        data = tax_table_data()
        data["fica"] = dict(data["fica"], additional_medicare_threshold=200000)

        table = load_tax_table_set(data)

        self.assertEqual(table.fica.threshold_for("head_of_household"), Decimal("200000"))

    def test_supplemental_rate_is_optional(self) -> None:
        table = tax_table(federal_supplemental_withholding_rate=None)

        self.assertIsNone(table.federal_supplemental_withholding_rate)

    def test_reports_every_missing_section(self) -> None:
        data = tax_table_data()
        del data["fica"]
        del data["retirement"]

        with self.assertRaises(TaxTableError) as ctx:
            load_tax_table_set(data)

        joined = " ".join(ctx.exception.errors)
        self.assertGreaterEqual(len(ctx.exception.errors), 2)
        self.assertIn("fica", joined)
        self.assertIn("retirement", joined)

    def test_rejects_empty_bracket_list(self) -> None:
        with self.assertRaises(TaxTableError) as ctx:
            tax_table(federal_income_tax_brackets=brackets_for_all([]))

        self.assertTrue(
            any(error.startswith("federal_income_tax_brackets.single") for error in ctx.exception.errors)
        )

    def test_rejects_non_finite_values(self) -> None:
        brackets = [{"lowerBound": 0, "upperBound": None, "rate": "NaN"}]

        with self.assertRaises(TaxTableError):
            tax_table(federal_income_tax_brackets=brackets_for_all(brackets))

        data = tax_table_data()
        data["fica"] = dict(data["fica"], ss_wage_base="Infinity")
        with self.assertRaises(TaxTableError):
            load_tax_table_set(data)

    def test_rejects_gap_between_brackets(self) -> None:
        brackets = [
            {"lowerBound": 0, "upperBound": 10000, "rate": "0.10"},
            {"lowerBound": 12000, "upperBound": None, "rate": "0.20"},
        ]

        with self.assertRaises(TaxTableError):
            tax_table(federal_income_tax_brackets=brackets_for_all(brackets))

    def test_rejects_open_bracket_before_the_last(self) -> None:
        brackets = [
            {"lowerBound": 0, "upperBound": None, "rate": "0.10"},
            {"lowerBound": 10000, "upperBound": None, "rate": "0.20"},
        ]

        with self.assertRaises(TaxTableError):
            tax_table(federal_income_tax_brackets=brackets_for_all(brackets))

    def test_rejects_negative_rate(self) -> None:
        brackets = [{"lowerBound": 0, "upperBound": None, "rate": "-0.1"}]

        with self.assertRaises(TaxTableError):
            tax_table(federal_income_tax_brackets=brackets_for_all(brackets))

    def test_rejects_non_object_payload(self) -> None:
        with self.assertRaises(TaxTableError):
            load_tax_table_set([1, 2, 3])

    def test_error_is_a_value_error(self) -> None:
        with self.assertRaises(ValueError):
            load_tax_table_set({})


if __name__ == "__main__":
    unittest.main()
