from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Callable, Dict, Protocol

from cashflow.money import ZERO


class StateWithholding(Protocol):
    def compute(
        self,
        gross: Decimal,
        taxable_wages: Decimal,
        filing_status: str,
        pay_date: date,
    ) -> Decimal: ...


@dataclass(frozen=True)
class FlatRateStateWithholding:
    """Withholds a flat percentage of taxable wages."""

    rate_percent: Decimal = ZERO

    def compute(
        self,
        gross: Decimal,
        taxable_wages: Decimal,
        filing_status: str,
        pay_date: date,
    ) -> Decimal:
        return max(ZERO, taxable_wages * (self.rate_percent / Decimal("100")))


@dataclass(frozen=True)
class NoStateWithholding:
    def compute(
        self,
        gross: Decimal,
        taxable_wages: Decimal,
        filing_status: str,
        pay_date: date,
    ) -> Decimal:
        return ZERO


StateWithholdingFactory = Callable[[Decimal], StateWithholding]


class StateWithholdingRegistry:
    """Named state withholding strategies.

    Factories receive the flat rate configured in payroll settings so that a
    jurisdiction can ignore it or use it as a fallback.
    """

    def __init__(self) -> None:
        self._factories: Dict[str, StateWithholdingFactory] = {}

    def register(self, code: str, factory: StateWithholdingFactory) -> None:
        normalized = _normalize_code(code)
        if not normalized:
            raise ValueError("State code required.")
        self._factories[normalized] = factory

    def codes(self) -> list[str]:
        return sorted(self._factories)

    def resolve(self, code: str | None, flat_rate_percent: Decimal) -> StateWithholding:
        if not code:
            return FlatRateStateWithholding(flat_rate_percent)
        normalized = _normalize_code(code)
        try:
            factory = self._factories[normalized]
        except KeyError as exc:
            raise ValueError(f"Unsupported state withholding: {code}") from exc
        return factory(flat_rate_percent)


def default_registry() -> StateWithholdingRegistry:
    registry = StateWithholdingRegistry()
    registry.register("flat", FlatRateStateWithholding)
    registry.register("none", lambda _rate: NoStateWithholding())
    return registry


def _normalize_code(code: str) -> str:
    return code.strip().lower()
