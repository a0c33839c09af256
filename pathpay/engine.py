"""Core calculation engine for the loan calculator.

This module implements the financial logic required to build amortization
schedules for both equal-total (annuity) and equal-principal (declining)
loans at weekly, biweekly, monthly or yearly repayment frequencies. It is a
pure function of its input: the same ``LoanInput`` always yields the same
``AmortizationResult`` and nothing is read from or written to storage.

The recurrence runs on unrounded ``Decimal`` values. Rounding to cents only
happens when rows are displayed and when the total payment is summed, so the
displayed total always matches the displayed table.
"""

from __future__ import annotations

import logging
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP, getcontext
from typing import List, Optional, Union

from .data_models import (
    AmortizationMethod,
    AmortizationResult,
    LoanInput,
    RepaymentFrequency,
    ScheduleRow,
)
from .exceptions import InvalidInputError
from .utils import add_months, add_years, decimal_from_str, parse_start_date

getcontext().prec = 28  # increase precision for financial calculations

logger = logging.getLogger(__name__)

HALF_CENT = Decimal("0.005")


def periods_per_year(frequency: Union[RepaymentFrequency, str]) -> int:
    return RepaymentFrequency.parse(frequency).periods_per_year


def total_periods(term_months: int, frequency: Union[RepaymentFrequency, str]) -> int:
    """Convert a term in months into a number of repayment periods.

    ``round(term_months / 12 * periods_per_year)`` with halves rounded up
    rather than to even. Yearly repayment always has at least one period so a
    six-month loan repaid yearly is still a one-period loan.
    """
    frequency = RepaymentFrequency.parse(frequency)
    exact = Decimal(term_months) * Decimal(frequency.periods_per_year) / Decimal(12)
    periods = int(exact.quantize(Decimal(1), rounding=ROUND_HALF_UP))
    if frequency is RepaymentFrequency.YEARLY:
        periods = max(1, periods)
    if periods <= 0:
        raise InvalidInputError(
            f"Term of {term_months} months yields no {frequency.value} periods",
            field="term_months",
            value=term_months,
        )
    return periods


def periodic_rate(annual_rate_percent: Decimal, frequency: Union[RepaymentFrequency, str]) -> Decimal:
    """Return the interest rate of one period as a decimal fraction."""
    if annual_rate_percent == 0:
        return Decimal("0")
    return annual_rate_percent / Decimal(100) / Decimal(periods_per_year(frequency))


def annuity_payment(principal: Decimal, rate: Decimal, periods: int) -> Decimal:
    """Return the level payment that repays ``principal`` over ``periods``.

    The formula is:

        payment = P * i / (1 - (1 + i)^-n)

    where ``P`` is the principal, ``i`` is the periodic interest rate and
    ``n`` is the number of payments. When the interest rate is zero the
    formula divides by zero, and the payment simplifies to ``P / n``.
    """
    if periods <= 0:
        raise InvalidInputError("Number of periods must be positive", field="periods", value=periods)
    if rate == 0:
        return principal / Decimal(periods)
    return principal * rate / (1 - (1 + rate) ** -periods)


def advance_date(start: date, frequency: Union[RepaymentFrequency, str], units: int) -> date:
    """Move ``start`` forward by ``units`` periods of ``frequency``.

    Monthly and yearly steps clamp to the last day of the target month, so
    31 January plus one month is the end of February, not early March.
    """
    frequency = RepaymentFrequency.parse(frequency)
    if frequency is RepaymentFrequency.WEEKLY:
        return start + timedelta(days=7 * units)
    if frequency is RepaymentFrequency.BIWEEKLY:
        return start + timedelta(days=14 * units)
    if frequency is RepaymentFrequency.MONTHLY:
        return add_months(start, units)
    return add_years(start, units)


def _validated_amounts(loan: LoanInput):
    try:
        principal = decimal_from_str(loan.principal)
    except ValueError as exc:
        raise InvalidInputError(str(exc), field="principal", value=loan.principal) from exc
    if principal <= 0:
        raise InvalidInputError("Principal must be positive", field="principal", value=loan.principal)

    try:
        rate = decimal_from_str(loan.annual_rate_percent)
    except ValueError as exc:
        raise InvalidInputError(str(exc), field="annual_rate_percent", value=loan.annual_rate_percent) from exc
    if rate < 0:
        raise InvalidInputError(
            "Interest rate cannot be negative", field="annual_rate_percent", value=loan.annual_rate_percent
        )

    term = loan.term_months
    if isinstance(term, bool) or not isinstance(term, int):
        raise InvalidInputError("Term must be a whole number of months", field="term_months", value=term)
    if term <= 0:
        raise InvalidInputError("Term must be positive", field="term_months", value=term)
    return principal, rate, term


def compute_amortization(loan: LoanInput) -> AmortizationResult:
    """Compute the amortization schedule and summary for a loan.

    Parameters
    ----------
    loan: LoanInput
        The loan parameters collected by a form.

    Returns
    -------
    AmortizationResult
        The periodic payment, one ``ScheduleRow`` per period, the totals and
        the payoff date (``None`` when the start date is absent or invalid).

    Raises
    ------
    InvalidInputError
        If the principal or term is not positive, the rate is negative, or
        the frequency or method is not recognised.
    """
    principal, rate_percent, term = _validated_amounts(loan)
    frequency = RepaymentFrequency.parse(loan.repayment_frequency)
    method = AmortizationMethod.parse(loan.amortization_method)

    n = total_periods(term, frequency)
    rate = periodic_rate(rate_percent, frequency)
    start: Optional[date] = parse_start_date(loan.start_date)

    if method is AmortizationMethod.EQUAL_TOTAL:
        level_payment = annuity_payment(principal, rate, n)
        constant_principal = None
    else:
        level_payment = None
        constant_principal = principal / Decimal(n)

    schedule: List[ScheduleRow] = []
    balance = principal
    for period in range(1, n + 1):
        interest = balance * rate
        if method is AmortizationMethod.EQUAL_TOTAL:
            principal_payment = level_payment - interest
        else:
            principal_payment = constant_principal
        payment = principal_payment + interest
        balance -= principal_payment
        # Final-period drift: clamp to zero.
        if balance < 0 or (period == n and balance < HALF_CENT):
            balance = Decimal("0")

        schedule.append(
            ScheduleRow(
                period=period,
                due_date=advance_date(start, frequency, period - 1) if start else None,
                payment=payment,
                interest=interest,
                principal=principal_payment,
                balance=balance,
            )
        )

    total_payment = sum((row.rounded_payment for row in schedule), Decimal("0"))
    total_interest = total_payment - principal
    periodic_payment = level_payment if level_payment is not None else schedule[0].payment
    payoff = advance_date(start, frequency, n) if start else None

    logger.debug(
        "Computed %d %s periods (%s) for principal %s at %s%%",
        n,
        frequency.value,
        method.value,
        principal,
        rate_percent,
    )

    return AmortizationResult(
        loan=loan,
        principal=principal,
        annual_rate_percent=rate_percent,
        term_months=term,
        repayment_frequency=frequency,
        amortization_method=method,
        total_periods=n,
        periodic_rate=rate,
        periodic_payment=periodic_payment,
        schedule=tuple(schedule),
        total_payment=total_payment,
        total_interest=total_interest,
        start_date=start,
        payoff_date=payoff,
    )
