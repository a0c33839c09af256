"""Data models for the loan calculator.

This module defines the enums and dataclasses used across the calculator:
repayment frequencies, amortization methods, loan categories, the loan input
collected from a form, the individual schedule rows and the overall result of
an amortization. All value types are frozen so a result can be handed to the
stores and renderers without anyone mutating it.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Optional, Tuple, Union

from .exceptions import InvalidInputError

TWO_PLACES = Decimal("0.01")


def round_money(value: Decimal) -> Decimal:
    """Round a monetary amount to two fractional digits (half up)."""
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


class RepaymentFrequency(str, Enum):
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"

    @property
    def periods_per_year(self) -> int:
        return _PERIODS_PER_YEAR[self]

    @property
    def unit_label(self) -> str:
        """Label of one period, e.g. ``"Month"``."""
        return _UNIT_LABELS[self]

    @classmethod
    def parse(cls, value: Union[str, "RepaymentFrequency"]) -> "RepaymentFrequency":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            raise InvalidInputError(
                f"Unknown repayment frequency: {value}", field="repayment_frequency", value=value
            ) from exc


_PERIODS_PER_YEAR = {
    RepaymentFrequency.WEEKLY: 52,
    RepaymentFrequency.BIWEEKLY: 26,
    RepaymentFrequency.MONTHLY: 12,
    RepaymentFrequency.YEARLY: 1,
}

_UNIT_LABELS = {
    RepaymentFrequency.WEEKLY: "Week",
    RepaymentFrequency.BIWEEKLY: "Bi-Week",
    RepaymentFrequency.MONTHLY: "Month",
    RepaymentFrequency.YEARLY: "Year",
}


class AmortizationMethod(str, Enum):
    """How each period's payment is split between principal and interest.

    ``EQUAL_TOTAL`` keeps the total payment level (annuity). ``EQUAL_PRINCIPAL``
    repays a constant principal component, so the payment declines with the
    balance.
    """

    EQUAL_TOTAL = "equal_total"
    EQUAL_PRINCIPAL = "equal_principal"

    @classmethod
    def parse(cls, value: Union[str, "AmortizationMethod"]) -> "AmortizationMethod":
        if isinstance(value, cls):
            return value
        key = str(value).strip()
        method = _METHOD_ALIASES.get(key) or _METHOD_ALIASES.get(key.lower())
        if method is None:
            raise InvalidInputError(
                f"Unknown amortization method: {value}", field="amortization_method", value=value
            )
        return method


_METHOD_ALIASES = {
    "equal_total": AmortizationMethod.EQUAL_TOTAL,
    "equalTotal": AmortizationMethod.EQUAL_TOTAL,
    "annuity": AmortizationMethod.EQUAL_TOTAL,
    "equal_principal": AmortizationMethod.EQUAL_PRINCIPAL,
    "equalPrincipal": AmortizationMethod.EQUAL_PRINCIPAL,
    "decreasing": AmortizationMethod.EQUAL_PRINCIPAL,
}


class LoanCategory(str, Enum):
    PERSONAL = "personal"
    MORTGAGE = "mortgage"
    AUTO = "auto"
    BUSINESS = "business"

    @property
    def label(self) -> str:
        return _CATEGORY_LABELS[self]

    @classmethod
    def parse(cls, value: Union[str, "LoanCategory"]) -> "LoanCategory":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            raise InvalidInputError(f"Unknown loan category: {value}", field="category", value=value) from exc


_CATEGORY_LABELS = {
    LoanCategory.PERSONAL: "Personal Loan",
    LoanCategory.MORTGAGE: "Mortgage",
    LoanCategory.AUTO: "Auto Loan",
    LoanCategory.BUSINESS: "Business Loan",
}


@dataclass(frozen=True)
class LoanInput:
    """Parameters of a single loan calculation.

    Attributes
    ----------
    principal: Decimal
        The amount borrowed. Must be positive.
    annual_rate_percent: Decimal
        Nominal annual interest rate in percent (``12`` means 12 % p.a.).
    term_months: int
        Loan term in months, converted by the engine into periods of the
        chosen repayment frequency.
    repayment_frequency: RepaymentFrequency
        Accepts the enum or its string value.
    amortization_method: AmortizationMethod
        Accepts the enum, its string value or a known alias.
    start_date: date, str or None
        First due date. Strings in ``DD/MM/YYYY`` (or ISO) form are parsed by
        the engine; an absent or unparseable value yields a schedule without
        calendar dates.
    """

    principal: Decimal
    annual_rate_percent: Decimal
    term_months: int
    repayment_frequency: Union[RepaymentFrequency, str] = RepaymentFrequency.MONTHLY
    amortization_method: Union[AmortizationMethod, str] = AmortizationMethod.EQUAL_TOTAL
    start_date: Union[date, str, None] = None


@dataclass(frozen=True)
class ScheduleRow:
    """One period of the amortization schedule.

    Amounts are kept unrounded; the ``rounded_*`` properties give the values
    shown in tables and summed into the totals. ``due_date`` is ``None`` when
    the loan has no usable start date.
    """

    period: int
    due_date: Optional[date]
    payment: Decimal
    interest: Decimal
    principal: Decimal
    balance: Decimal

    @property
    def rounded_payment(self) -> Decimal:
        return round_money(self.payment)

    @property
    def rounded_interest(self) -> Decimal:
        return round_money(self.interest)

    @property
    def rounded_principal(self) -> Decimal:
        return round_money(self.principal)

    @property
    def rounded_balance(self) -> Decimal:
        return round_money(self.balance)


@dataclass(frozen=True)
class AmortizationResult:
    """Output of the amortization engine.

    For equal-principal loans ``periodic_payment`` is the first period's
    payment; the schedule carries the actual payment of every period.
    ``total_interest`` is derived from ``total_payment`` so the two always
    reconcile with the rounded table.
    """

    loan: LoanInput
    principal: Decimal
    annual_rate_percent: Decimal
    term_months: int
    repayment_frequency: RepaymentFrequency
    amortization_method: AmortizationMethod
    total_periods: int
    periodic_rate: Decimal
    periodic_payment: Decimal
    schedule: Tuple[ScheduleRow, ...]
    total_payment: Decimal
    total_interest: Decimal
    start_date: Optional[date]
    payoff_date: Optional[date]

    @property
    def rounded_periodic_payment(self) -> Decimal:
        return round_money(self.periodic_payment)
