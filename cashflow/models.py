from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Literal, Optional

from cashflow.payroll_settings import PayrollSettings

AccountType = Literal["checking", "savings", "investment", "loan"]
CategoryType = Literal["income", "expense", "transfer"]
Cadence = Literal["monthly", "weekly", "biweekly", "semimonthly"]
ItemType = Literal["income", "expense", "transfer"]
TransactionSource = Literal["generated", "manual"]

SNAPSHOT_SCHEMA_VERSION = 1


@dataclass(frozen=True)
class Account:
    id: str
    name: str
    type: AccountType
    included_in_cash_forecast: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_cash(self) -> bool:
        return self.included_in_cash_forecast and self.type not in {"investment", "loan"}

    @property
    def is_investment(self) -> bool:
        return self.type == "investment"


@dataclass(frozen=True)
class Category:
    id: str
    name: str
    type: CategoryType


@dataclass(frozen=True)
class RecurringItem:
    id: str
    name: str
    category_id: str
    account_id: str
    cadence: Cadence
    default_amount: Decimal
    type: ItemType
    day_rule: Optional[str] = None
    enabled: bool = True
    anchor_date: Optional[date] = None
    transfer_account_id: Optional[str] = None
    loan_id: Optional[str] = None


@dataclass(frozen=True)
class PaycheckEntry:
    id: str
    date: date
    amount: Decimal
    is_bonus: bool = False
    description: Optional[str] = None

    @property
    def override_key(self) -> tuple[date, bool]:
        return (self.date, self.is_bonus)


@dataclass(frozen=True)
class PaycheckDepositSplit:
    id: str
    account_id: str
    amount: Decimal = Decimal("0")
    is_remainder: bool = False


@dataclass(frozen=True)
class VariableOverride:
    item_id: str
    amount: Decimal


@dataclass(frozen=True)
class OneOffAdjustment:
    id: str
    date: date
    amount: Decimal
    account_id: str
    category_id: str
    type: ItemType
    description: str = ""
    transfer_account_id: Optional[str] = None
    loan_id: Optional[str] = None


@dataclass(frozen=True)
class MonthSetup:
    paycheck_schedule: Cadence = "biweekly"
    paycheck_anchor_date: Optional[date] = None
    paycheck_deposit_splits: List[PaycheckDepositSplit] = field(default_factory=list)
    paycheck_category_id: Optional[str] = None
    paycheck_default_amount: Decimal = Decimal("0")
    paycheck_estimates: List[PaycheckEntry] = field(default_factory=list)
    paycheck_overrides: List[PaycheckEntry] = field(default_factory=list)
    variable_overrides: List[VariableOverride] = field(default_factory=list)
    one_offs: List[OneOffAdjustment] = field(default_factory=list)
    last_generated_at: Optional[datetime] = None
    generation_version: int = 0


@dataclass(frozen=True)
class Transaction:
    id: str
    date: date
    amount: Decimal
    account_id: str
    category_id: Optional[str] = None
    description: str = ""
    transaction_type: Optional[ItemType] = None
    transfer_account_id: Optional[str] = None
    loan_id: Optional[str] = None
    notes: Optional[str] = None
    source: TransactionSource = "manual"
    source_item_id: Optional[str] = None
    generated_batch_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_transfer(self) -> bool:
        return self.transaction_type == "transfer" or self.transfer_account_id is not None


@dataclass(frozen=True)
class StartingBalance:
    account_id: str
    amount: Decimal


@dataclass(frozen=True)
class MonthSnapshot:
    id: str
    accounts: List[Account] = field(default_factory=list)
    categories: List[Category] = field(default_factory=list)
    transactions: List[Transaction] = field(default_factory=list)
    starting_balances: List[StartingBalance] = field(default_factory=list)
    month_setup: Optional[MonthSetup] = None
    schema_version: int = SNAPSHOT_SCHEMA_VERSION
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class LoanPaymentRecord:
    month_id: str
    amount: Decimal
    interest_accrued: Decimal = Decimal("0")
    balance_before: Optional[Decimal] = None
    balance_after: Optional[Decimal] = None


@dataclass(frozen=True)
class Loan:
    id: str
    name: str
    original_principal: Decimal
    current_balance: Decimal
    interest_rate: Decimal
    origination_date: Optional[date] = None
    maturity_date: Optional[date] = None
    payment_history: List[LoanPaymentRecord] = field(default_factory=list)
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class GainLossHistoryEntry:
    month_id: str
    balances: List[StartingBalance] = field(default_factory=list)


@dataclass(frozen=True)
class ForecastPoint:
    date: date
    balances: Dict[str, Decimal]
    total_cash: Decimal


@dataclass(frozen=True)
class ForecastSummary:
    projected_end_balance: Decimal
    lowest_projected_balance: Decimal
    lowest_balance_date: Optional[date]


@dataclass(frozen=True)
class AppSettings:
    accounts: List[Account] = field(default_factory=list)
    categories: List[Category] = field(default_factory=list)
    recurring_items: List[RecurringItem] = field(default_factory=list)
    loans: List[Loan] = field(default_factory=list)
    gain_loss_history: List[GainLossHistoryEntry] = field(default_factory=list)
    payroll_settings: Optional[PayrollSettings] = None
    updated_at: Optional[datetime] = None
