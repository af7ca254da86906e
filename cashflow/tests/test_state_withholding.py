import unittest
from datetime import date
from decimal import Decimal

from cashflow.state_withholding import (
    FlatRateStateWithholding,
    NoStateWithholding,
    default_registry,
)

PAY_DATE = date(2024, 3, 15)


class HalfRateWithholding:
    def __init__(self, rate: Decimal) -> None:
        self.rate = rate

    def compute(self, gross, taxable_wages, filing_status, pay_date) -> Decimal:
        return taxable_wages * self.rate / Decimal("200")


class StateWithholdingTests(unittest.TestCase):
    def test_flat_rate_applies_to_taxable_wages(self) -> None:
        strategy = FlatRateStateWithholding(Decimal("4.5"))

        self.assertEqual(
            strategy.compute(Decimal("2000"), Decimal("1800"), "single", PAY_DATE),
            Decimal("81.0"),
        )

    def test_registry_defaults_to_configured_flat_rate(self) -> None:
        registry = default_registry()

        self.assertEqual(
            registry.resolve(None, Decimal("3")), FlatRateStateWithholding(Decimal("3"))
        )
        self.assertEqual(
            registry.resolve(" FLAT ", Decimal("3")), FlatRateStateWithholding(Decimal("3"))
        )
        self.assertIsInstance(registry.resolve("none", Decimal("3")), NoStateWithholding)

    def test_registered_jurisdiction(self) -> None:
        registry = default_registry()
        registry.register("half", HalfRateWithholding)

        strategy = registry.resolve("half", Decimal("10"))

        self.assertEqual(strategy.compute(Decimal("1000"), Decimal("1000"), "single", PAY_DATE), Decimal("50"))
        self.assertEqual(registry.codes(), ["flat", "half", "none"])

    def test_unknown_code_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            default_registry().resolve("zz", Decimal("0"))

    def test_blank_code_cannot_be_registered(self) -> None:
        with self.assertRaises(ValueError):
            default_registry().register("  ", FlatRateStateWithholding)


if __name__ == "__main__":
    unittest.main()
