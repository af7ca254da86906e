import unittest
from decimal import Decimal

from cashflow.gain_loss import (
    GainLossTotals,
    calculate_gain_loss,
    classify_totals,
    resolve_balances,
)
from cashflow.models import Account, GainLossHistoryEntry, MonthSnapshot, StartingBalance

ACCOUNTS = [
    Account(id="checking", name="Checking", type="checking"),
    Account(id="brokerage", name="Brokerage", type="investment"),
    Account(id="mortgage", name="Mortgage", type="loan"),
]


def balances(**amounts):
    return [StartingBalance(account_id=key, amount=Decimal(value)) for key, value in amounts.items()]


def month(month_id, **amounts) -> MonthSnapshot:
    return MonthSnapshot(id=month_id, accounts=ACCOUNTS, starting_balances=balances(**amounts))


class GainLossTests(unittest.TestCase):
    def test_year_to_date_cash_gain(self) -> None:
        snapshots = {
            "2024-01": month("2024-01", checking="5000", brokerage="1000"),
            "2024-05": month("2024-05", checking="5500", brokerage="1100"),
            "2024-06": month("2024-06", checking="5800", brokerage="900"),
        }

        report = calculate_gain_loss("2024-06", ACCOUNTS, snapshots)

        self.assertEqual(report.year_to_date.cash, Decimal("800"))
        self.assertEqual(report.year_to_date.investments, Decimal("-100"))
        self.assertEqual(report.year_to_date.cash_and_investments, Decimal("700"))
        self.assertEqual(report.month_over_month.cash, Decimal("300"))
        self.assertEqual(report.month_over_month.investments, Decimal("-200"))
        self.assertEqual([row.month_id for row in report.monthly][0], "2024-01")
        self.assertEqual(len(report.monthly), 6)

    def test_history_entry_fills_missing_month(self) -> None:
        snapshots = {
            "2024-01": month("2024-01", checking="0", brokerage="0"),
            "2024-03": month("2024-03", checking="4500"),
        }
        history = [
            GainLossHistoryEntry(month_id="2024-01", balances=balances(checking="4000")),
            GainLossHistoryEntry(month_id="2024-02", balances=balances(checking="4200")),
        ]

        report = calculate_gain_loss("2024-03", ACCOUNTS, snapshots, history)

        self.assertEqual(report.year_to_date.cash, Decimal("500"))
        self.assertEqual(report.month_over_month.cash, Decimal("300"))

    def test_months_without_data_count_as_zero(self) -> None:
        snapshots = {"2024-02": month("2024-02", checking="1000")}

        report = calculate_gain_loss("2024-02", ACCOUNTS, snapshots)

        self.assertEqual(report.year_to_date.cash, Decimal("1000"))
        self.assertEqual(report.monthly[0].month_over_month, GainLossTotals())

    def test_january_compares_against_prior_december(self) -> None:
        snapshots = {
            "2023-12": month("2023-12", checking="3000"),
            "2024-01": month("2024-01", checking="3400"),
        }

        report = calculate_gain_loss("2024-01", ACCOUNTS, snapshots)

        self.assertEqual(report.month_over_month.cash, Decimal("400"))
        self.assertEqual(report.year_to_date.cash, Decimal("0"))

    def test_loans_are_excluded(self) -> None:
        totals = classify_totals(ACCOUNTS, balances(checking="100", brokerage="50", mortgage="-90000"))

        self.assertEqual(totals, GainLossTotals(Decimal("100"), Decimal("50"), Decimal("150")))


class ResolveBalancesTests(unittest.TestCase):
    def test_snapshot_with_real_balances_wins(self) -> None:
        entry = GainLossHistoryEntry(month_id="2024-01", balances=balances(checking="1"))

        self.assertEqual(
            resolve_balances(month("2024-01", checking="10"), entry), balances(checking="10")
        )

    def test_zero_snapshot_falls_back_to_history(self) -> None:
        entry = GainLossHistoryEntry(month_id="2024-01", balances=balances(checking="1"))

        self.assertEqual(resolve_balances(month("2024-01", checking="0"), entry), balances(checking="1"))

    def test_nothing_available(self) -> None:
        self.assertEqual(resolve_balances(None, None), [])


if __name__ == "__main__":
    unittest.main()
