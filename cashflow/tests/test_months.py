import itertools
import unittest
from datetime import date
from decimal import Decimal

from cashflow.models import (
    Account,
    AppSettings,
    Category,
    MonthSnapshot,
    PaycheckDepositSplit,
    StartingBalance,
    Transaction,
)
from cashflow.months import default_month_setup, new_month_snapshot, normalize_deposit_splits
from cashflow.payroll_settings import load_payroll_settings

LOAN = Account(id="car", name="Car loan", type="loan")
CHECKING = Account(id="checking", name="Checking", type="checking")
SAVINGS = Account(id="savings", name="Savings", type="savings")

CATEGORIES = [
    Category(id="housing", name="Housing", type="expense"),
    Category(id="salary", name="Salary", type="income"),
    Category(id="bonus", name="Bonus", type="income"),
]


def sequential_ids():
    counter = itertools.count(1)
    return lambda: f"split-{next(counter)}"


def split(split_id, account_id, amount="0", is_remainder=False) -> PaycheckDepositSplit:
    return PaycheckDepositSplit(
        id=split_id, account_id=account_id, amount=Decimal(amount), is_remainder=is_remainder
    )


class NormalizeDepositSplitsTests(unittest.TestCase):
    def normalize(self, splits, accounts=(LOAN, CHECKING, SAVINGS)):
        return normalize_deposit_splits(splits, accounts, sequential_ids())

    def test_no_splits_sends_everything_to_first_cash_account(self) -> None:
        self.assertEqual(
            self.normalize([]),
            [PaycheckDepositSplit(id="split-1", account_id="checking", is_remainder=True)],
        )

    def test_only_first_remainder_is_kept(self) -> None:
        normalized = self.normalize(
            [
                split("a", "savings", "200"),
                split("b", "checking", "50", is_remainder=True),
                split("c", "savings", "75", is_remainder=True),
            ]
        )

        self.assertEqual(
            normalized,
            [
                split("a", "savings", "200"),
                split("b", "checking", "0", is_remainder=True),
                split("c", "savings", "75"),
            ],
        )

    def test_lone_split_becomes_remainder(self) -> None:
        self.assertEqual(
            self.normalize([split("a", "savings", "400")]),
            [split("a", "savings", "0", is_remainder=True)],
        )

    def test_several_fixed_splits_stay_fixed(self) -> None:
        splits = [split("a", "savings", "400"), split("b", "checking", "100")]

        self.assertEqual(self.normalize(splits), splits)

    def test_loan_or_unknown_account_falls_back_to_cash(self) -> None:
        normalized = self.normalize(
            [split("a", "car", "300"), split("b", "closed", "0", is_remainder=True)]
        )

        self.assertEqual([entry.account_id for entry in normalized], ["checking", "checking"])
        self.assertTrue(normalized[1].is_remainder)

    def test_missing_split_ids_are_filled(self) -> None:
        normalized = self.normalize([split("", "savings", "100"), split("", "checking", "50")])

        self.assertEqual([entry.id for entry in normalized], ["split-1", "split-2"])

    def test_without_accounts_nothing_to_deposit_into(self) -> None:
        self.assertEqual(self.normalize([split("a", "checking", "10")], accounts=[]), [])

    def test_only_loan_accounts_fall_back_to_first_account(self) -> None:
        normalized = self.normalize([], accounts=[LOAN])

        self.assertEqual(normalized[0].account_id, "car")


class DefaultMonthSetupTests(unittest.TestCase):
    def test_without_payroll_settings(self) -> None:
        setup = default_month_setup(
            "2024-04", [LOAN, SAVINGS, CHECKING], CATEGORIES, id_factory=sequential_ids()
        )

        self.assertEqual(setup.paycheck_schedule, "monthly")
        self.assertEqual(setup.paycheck_anchor_date, date(2024, 4, 1))
        self.assertEqual(setup.paycheck_category_id, "salary")
        self.assertEqual(
            setup.paycheck_deposit_splits,
            [PaycheckDepositSplit(id="split-1", account_id="savings", is_remainder=True)],
        )
        self.assertEqual(setup.paycheck_estimates, [])

    def test_follows_payroll_settings(self) -> None:
        payroll = load_payroll_settings(
            {
                "tax_year": 2024,
                "pay_cycle": "semimonthly",
                "paycheck_anchor_date": "2024-01-15",
                "paycheck_category_id": "bonus",
            }
        )

        setup = default_month_setup("2024-04", [CHECKING], CATEGORIES, payroll)

        self.assertEqual(setup.paycheck_schedule, "semimonthly")
        self.assertEqual(setup.paycheck_anchor_date, date(2024, 1, 15))
        self.assertEqual(setup.paycheck_category_id, "bonus")

    def test_payroll_settings_without_anchor_or_category(self) -> None:
        payroll = load_payroll_settings({"tax_year": 2024})

        setup = default_month_setup("2024-04", [CHECKING], CATEGORIES[:1], payroll)

        self.assertEqual(setup.paycheck_schedule, "biweekly")
        self.assertEqual(setup.paycheck_anchor_date, date(2024, 4, 1))
        self.assertIsNone(setup.paycheck_category_id)


class NewMonthSnapshotTests(unittest.TestCase):
    def test_rolls_balances_forward_from_previous_month(self) -> None:
        march = MonthSnapshot(
            id="2024-03",
            accounts=[CHECKING],
            transactions=[
                Transaction(
                    id="rent",
                    date=date(2024, 3, 1),
                    amount=Decimal("-1200"),
                    account_id="checking",
                )
            ],
            starting_balances=[StartingBalance(account_id="checking", amount=Decimal("2500.50"))],
        )
        settings = AppSettings(accounts=[CHECKING, SAVINGS], categories=CATEGORIES)

        april = new_month_snapshot("2024-04", settings, march, sequential_ids())

        self.assertEqual(april.id, "2024-04")
        self.assertEqual(april.accounts, [CHECKING, SAVINGS])
        self.assertEqual(april.transactions, [])
        self.assertEqual(
            april.starting_balances,
            [
                StartingBalance(account_id="checking", amount=Decimal("1300.50")),
                StartingBalance(account_id="savings", amount=Decimal("0")),
            ],
        )
        self.assertEqual(april.month_setup.paycheck_deposit_splits[0].account_id, "checking")

    def test_first_month_starts_from_zero(self) -> None:
        settings = AppSettings(accounts=[CHECKING], categories=CATEGORIES)

        snapshot = new_month_snapshot("2024-01", settings)

        self.assertEqual(snapshot.starting_balances, [StartingBalance("checking", Decimal("0"))])
        self.assertTrue(snapshot.month_setup.paycheck_deposit_splits[0].id)


if __name__ == "__main__":
    unittest.main()
