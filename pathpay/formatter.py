"""Output helpers for the loan calculator.

This module provides simple functions to render amortization results, the
calculation history and the compare list in a tabular text format. We rely
only on built-in printing and string formatting; the CLI decides what to
print and when.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable

from .data_models import AmortizationMethod, AmortizationResult
from .utils import format_date


def print_summary(result: AmortizationResult) -> None:
    """Print the summary cards of a calculation in a human-readable format."""
    unit = result.repayment_frequency.unit_label
    # For equal-principal loans this is the first (largest) payment.
    payment_label = f"{unit}ly payment"
    if result.amortization_method is AmortizationMethod.EQUAL_PRINCIPAL:
        payment_label = f"First {unit.lower()}ly payment"
    print("Summary")
    print("-" * 72)
    print(f"Loan amount        : {result.principal:.2f}")
    print(f"Interest rate      : {result.annual_rate_percent} %")
    print(f"Duration           : {result.term_months} months ({result.total_periods} payments)")
    print(f"{payment_label:19s}: {result.rounded_periodic_payment:.2f}")
    print(f"Total payment      : {result.total_payment:.2f}")
    print(f"Total interest     : {result.total_interest:.2f}")
    print(f"Start date         : {format_date(result.start_date)}")
    print(f"Pay-off date       : {format_date(result.payoff_date)}")
    print("-" * 72)


def print_schedule(result: AmortizationResult) -> None:
    """Print the installment schedule as a simple table."""
    headers = ["#", result.repayment_frequency.unit_label, "Payment", "Interest", "Principal", "Balance"]
    print("\t".join(headers))
    for row in result.schedule:
        print(
            "\t".join(
                [
                    str(row.period),
                    format_date(row.due_date),
                    f"{row.rounded_payment:.2f}",
                    f"{row.rounded_interest:.2f}",
                    f"{row.rounded_principal:.2f}",
                    f"{row.rounded_balance:.2f}",
                ]
            )
        )


def _describe(record: Dict[str, Any]) -> Iterable[str]:
    frequency = (record.get("repayment_frequency") or "").capitalize()
    yield f"Amount: {record['principal']}"
    yield f"Term: {record['term_months']} months"
    yield f"Rate: {record['annual_rate_percent']}%"
    yield f"{frequency or 'Periodic'} payment: {record['periodic_payment']}"
    yield f"Total interest: {record['total_interest']}"
    yield f"Total payment: {record['total_payment']}"


def print_history(records: Iterable[Dict[str, Any]]) -> None:
    """Print the saved calculations, oldest first."""
    records = list(records)
    if not records:
        print("No history found.")
        return
    for record in records:
        print(f"[{record['id']}] {record['title']} ({record['category']})")
        for line in _describe(record):
            print(f"    {line}")
        print(f"    Start date: {record.get('start_date') or '-'}")
        print(f"    Pay-off date: {record.get('payoff_date') or '-'}")
        print(f"    Saved: {record['created_at']}")


def print_compare_list(ranked: Iterable[Dict[str, Any]]) -> None:
    """Print a ranked compare list (see :func:`pathpay.ranking.rank_records`)."""
    ranked = list(ranked)
    if not ranked:
        print("No compare data found.")
        return
    print("Compare list")
    print("=" * 72)
    for index, record in enumerate(ranked, start=1):
        print(f"{index}. {record['title']} [id {record['id']}]")
        for line in _describe(record):
            print(f"    {line}")
        if record.get("tag"):
            print(f"    {record['tag']}")
    print("=" * 72)
