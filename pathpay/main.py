"""Command-line interface for the loan calculator.

This module uses the ``click`` library to implement a multi-command
interface. Users can compute full amortization schedules, view summaries,
keep a history of calculations and maintain a compare list of up to three
loans. Results can be printed to the terminal or exported to JSON/CSV files.

It also holds the form logic shared with the web interface: turning the raw
strings a user typed into a ``LoanInput``.
"""

from __future__ import annotations

import csv
import json
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import click

from .config import DEFAULT_DATABASE_URL, configure_logging
from .data_models import AmortizationMethod, AmortizationResult, LoanCategory, LoanInput, RepaymentFrequency
from .engine import compute_amortization
from .exceptions import InvalidInputError, StorageError
from .formatter import print_compare_list, print_history, print_schedule, print_summary
from .ranking import rank_records
from .storage import LOCAL_OWNER, build_record, open_stores
from .utils import decimal_from_str, format_date

FREQUENCY_CHOICES = [f.value for f in RepaymentFrequency]
METHOD_CHOICES = [m.value for m in AmortizationMethod]
CATEGORY_CHOICES = [c.value for c in LoanCategory]
# 50 years; a weekly schedule tops out at 2600 rows
MAX_TERM_MONTHS = 600
OPTION_FOR_FIELD = {
    "principal": "--principal",
    "annual_rate_percent": "--rate",
    "term_months": "--term",
    "repayment_frequency": "--frequency",
    "amortization_method": "--method",
}


def parse_amount(value: str) -> Decimal:
    """Parse a numeric string with optional suffixes.

    Accepts plain numbers ("500000", "1,500,000") and shorthand with ``k``/``m``
    suffixes (e.g., "500k" meaning 500_000).
    """
    text = str(value).strip().lower().replace(",", "")
    factor = Decimal(1)
    if text.endswith("k"):
        factor = Decimal(1_000)
        text = text[:-1]
    elif text.endswith("m"):
        factor = Decimal(1_000_000)
        text = text[:-1]
    try:
        return decimal_from_str(text) * factor
    except ValueError as exc:
        raise InvalidInputError(f"Invalid amount: {value}", field="principal", value=value) from exc


def parse_term(value: str) -> int:
    """Parse a term in whole months, at most ``MAX_TERM_MONTHS``."""
    try:
        months = int(str(value).strip())
    except ValueError as exc:
        raise InvalidInputError(f"Invalid term: {value}", field="term_months", value=value) from exc
    if months > MAX_TERM_MONTHS:
        raise InvalidInputError(
            f"Term must be at most {MAX_TERM_MONTHS} months", field="term_months", value=value
        )
    return months


def parse_rate(value: str) -> Decimal:
    """Parse an annual rate in percent; a trailing ``%`` is allowed."""
    text = str(value).strip()
    if text.endswith("%"):
        text = text[:-1]
    try:
        return decimal_from_str(text)
    except ValueError as exc:
        raise InvalidInputError(f"Invalid interest rate: {value}", field="annual_rate_percent", value=value) from exc


def build_loan_input(
    amount: Optional[str],
    term: Optional[str],
    rate: Optional[str],
    start_date: Optional[str],
    repayment_frequency: str = RepaymentFrequency.MONTHLY.value,
    amortization_method: str = AmortizationMethod.EQUAL_TOTAL.value,
    require_start_date: bool = True,
) -> Optional[LoanInput]:
    """Build a ``LoanInput`` from the raw fields of a loan form.

    Returns ``None`` while any of amount, term, rate or start date is blank:
    an incomplete form simply produces no result. Malformed numbers raise
    ``InvalidInputError``. The start date is passed through as typed; if it
    does not parse, the schedule is computed without calendar dates.
    """
    required = [amount, term, rate]
    if require_start_date:
        required.append(start_date)
    if any(v is None or not str(v).strip() for v in required):
        return None
    return LoanInput(
        principal=parse_amount(amount),
        annual_rate_percent=parse_rate(rate),
        term_months=parse_term(term),
        repayment_frequency=RepaymentFrequency.parse(repayment_frequency),
        amortization_method=AmortizationMethod.parse(amortization_method),
        start_date=(start_date or "").strip() or None,
    )


def result_to_dict(result: AmortizationResult) -> Dict[str, Any]:
    """Convert a result into JSON-serialisable dictionaries (rounded values)."""
    schedule = [
        {
            "period": row.period,
            "date": format_date(row.due_date) if row.due_date else None,
            "payment": float(row.rounded_payment),
            "interest": float(row.rounded_interest),
            "principal": float(row.rounded_principal),
            "balance": float(row.rounded_balance),
        }
        for row in result.schedule
    ]
    summary = {
        "principal": float(result.principal),
        "annual_rate_percent": float(result.annual_rate_percent),
        "term_months": result.term_months,
        "repayment_frequency": result.repayment_frequency.value,
        "amortization_method": result.amortization_method.value,
        "total_periods": result.total_periods,
        "periodic_payment": float(result.rounded_periodic_payment),
        "total_payment": float(result.total_payment),
        "total_interest": float(result.total_interest),
        "start_date": format_date(result.start_date) if result.start_date else None,
        "payoff_date": format_date(result.payoff_date) if result.payoff_date else None,
    }
    return {"summary": summary, "schedule": schedule}


def export_to_json(path: Path, result: AmortizationResult) -> None:
    """Export schedule and summary to a JSON file."""
    with path.open("w", encoding="utf-8") as f:
        json.dump(result_to_dict(result), f, indent=2)


def export_to_csv(path: Path, result: AmortizationResult) -> None:
    """Export schedule to a CSV file."""
    header = ["Period", "Date", "Payment", "Interest", "Principal", "Balance"]
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(header)
        for row in result.schedule:
            writer.writerow(
                [
                    row.period,
                    format_date(row.due_date) if row.due_date else "",
                    f"{row.rounded_payment:.2f}",
                    f"{row.rounded_interest:.2f}",
                    f"{row.rounded_principal:.2f}",
                    f"{row.rounded_balance:.2f}",
                ]
            )


def _calculate(
    principal: str,
    rate: str,
    term: str,
    frequency: str,
    method: str,
    start_date: Optional[str],
) -> AmortizationResult:
    try:
        loan = build_loan_input(
            principal, term, rate, start_date, frequency, method, require_start_date=False
        )
        if loan is None:
            raise click.BadParameter("Amount, term and rate must not be blank")
        return compute_amortization(loan)
    except InvalidInputError as exc:
        raise click.BadParameter(exc.message, param_hint=OPTION_FOR_FIELD.get(exc.field)) from exc


def _stores(ctx: click.Context):
    if "stores" not in ctx.obj:
        try:
            ctx.obj["stores"] = open_stores(ctx.obj["database_url"])
        except StorageError as exc:
            raise click.ClickException(str(exc)) from exc
    return ctx.obj["stores"]


def loan_options(command: Callable) -> Callable:
    """Attach the loan form options shared by ``schedule`` and ``summary``."""
    options = [
        click.option("--principal", "-p", "principal", required=True, help="Loan amount (e.g. 10000000, 250k)"),
        click.option("--rate", "-r", "rate", required=True, help="Annual interest rate (percent)"),
        click.option("--term", "-t", "term", required=True, help="Loan term in months"),
        click.option(
            "--frequency", "-f", "frequency",
            type=click.Choice(FREQUENCY_CHOICES), default="monthly", show_default=True,
            help="Repayment frequency",
        ),
        click.option(
            "--method", "-m", "method",
            type=click.Choice(METHOD_CHOICES), default="equal_total", show_default=True,
            help="Amortization method",
        ),
        click.option("--start-date", "-s", "start_date", help="First payment date (DD/MM/YYYY)"),
    ]
    for option in reversed(options):
        command = option(command)
    return command


@click.group()
@click.option(
    "--database-url",
    envvar="PATHPAY_DATABASE_URL",
    default=DEFAULT_DATABASE_URL,
    show_default=True,
    help="SQLAlchemy URL of the history/compare database",
)
@click.option("--log-level", envvar="PATHPAY_LOG_LEVEL", default="WARNING", help="Logging level")
@click.pass_context
def cli(ctx: click.Context, database_url: str, log_level: str) -> None:
    """PathPay: plan smart, pay smart. A loan amortization calculator."""
    configure_logging(log_level)
    ctx.ensure_object(dict)
    ctx.obj["database_url"] = database_url


@cli.command()
@loan_options
@click.option(
    "--category", "-c", "category",
    type=click.Choice(CATEGORY_CHOICES), default="personal", show_default=True,
    help="Loan category stored with saved records",
)
@click.option("--title", "title", help="Title for the saved record")
@click.option("--save/--no-save", "save", default=False, help="Save the calculation to history")
@click.option("--compare", "compare", is_flag=True, help="Add the calculation to the compare list")
@click.option("--output", "output", type=str, help="Output file path (.json or .csv)")
@click.pass_context
def schedule(
    ctx: click.Context,
    principal: str,
    rate: str,
    term: str,
    frequency: str,
    method: str,
    start_date: Optional[str],
    category: str,
    title: Optional[str],
    save: bool,
    compare: bool,
    output: Optional[str],
) -> None:
    """Compute and print the full amortization schedule."""
    result = _calculate(principal, rate, term, frequency, method, start_date)
    if output:
        path = Path(output)
        if path.suffix.lower() == ".json":
            export_to_json(path, result)
        elif path.suffix.lower() == ".csv":
            export_to_csv(path, result)
        else:
            raise click.BadParameter("Unsupported output format; use .json or .csv", param_hint="--output")
        click.echo(f"Schedule exported to {path}")
    else:
        print_summary(result)
        print_schedule(result)

    if save or compare:
        history_store, compare_store = _stores(ctx)
        record = build_record(result, category, title)
        try:
            if save:
                record_id = history_store.add(LOCAL_OWNER, record)
                click.echo(f"Saved to history (id {record_id})")
            if compare:
                record_id = compare_store.add(LOCAL_OWNER, record)
                click.echo(f"Added to compare list (id {record_id})")
        except StorageError as exc:
            raise click.ClickException(exc.message) from exc


@cli.command()
@loan_options
@click.option("--output", "output", type=str, help="Output file path (.json)")
def summary(
    principal: str,
    rate: str,
    term: str,
    frequency: str,
    method: str,
    start_date: Optional[str],
    output: Optional[str],
) -> None:
    """Compute and print only the summary figures for a loan."""
    result = _calculate(principal, rate, term, frequency, method, start_date)
    if output:
        path = Path(output)
        if path.suffix.lower() != ".json":
            raise click.BadParameter("Summary export must use .json extension", param_hint="--output")
        with path.open("w", encoding="utf-8") as f:
            json.dump({"summary": result_to_dict(result)["summary"]}, f, indent=2)
        click.echo(f"Summary exported to {path}")
    else:
        print_summary(result)


@cli.group()
def history() -> None:
    """Browse and prune saved calculations."""


@history.command("list")
@click.pass_context
def history_list(ctx: click.Context) -> None:
    """List saved calculations, oldest first."""
    history_store, _ = _stores(ctx)
    try:
        print_history(history_store.list(LOCAL_OWNER))
    except StorageError as exc:
        raise click.ClickException(exc.message) from exc


@history.command("remove")
@click.argument("record_id", type=int)
@click.pass_context
def history_remove(ctx: click.Context, record_id: int) -> None:
    """Delete one saved calculation."""
    history_store, _ = _stores(ctx)
    try:
        removed = history_store.remove(LOCAL_OWNER, record_id)
    except StorageError as exc:
        raise click.ClickException(exc.message) from exc
    if not removed:
        raise click.ClickException(f"No history entry with id {record_id}")
    click.echo(f"Deleted history entry {record_id}")


@history.command("clear")
@click.confirmation_option(prompt="Are you sure you want to delete all history?")
@click.pass_context
def history_clear(ctx: click.Context) -> None:
    """Delete every saved calculation."""
    history_store, _ = _stores(ctx)
    try:
        deleted = history_store.clear(LOCAL_OWNER)
    except StorageError as exc:
        raise click.ClickException(exc.message) from exc
    click.echo(f"Deleted {deleted} history entries")


@cli.group()
def compare() -> None:
    """Show and edit the compare list (up to three loans)."""


@compare.command("list")
@click.pass_context
def compare_list(ctx: click.Context) -> None:
    """List compared loans with their value ranking."""
    _, compare_store = _stores(ctx)
    try:
        print_compare_list(rank_records(compare_store.list(LOCAL_OWNER)))
    except StorageError as exc:
        raise click.ClickException(exc.message) from exc


@compare.command("remove")
@click.argument("record_id", type=int)
@click.pass_context
def compare_remove(ctx: click.Context, record_id: int) -> None:
    """Remove one loan from the compare list."""
    _, compare_store = _stores(ctx)
    try:
        removed = compare_store.remove(LOCAL_OWNER, record_id)
    except StorageError as exc:
        raise click.ClickException(exc.message) from exc
    if not removed:
        raise click.ClickException(f"No compare entry with id {record_id}")
    click.echo(f"Removed compare entry {record_id}")


@compare.command("clear")
@click.pass_context
def compare_clear(ctx: click.Context) -> None:
    """Empty the compare list."""
    _, compare_store = _stores(ctx)
    try:
        deleted = compare_store.clear(LOCAL_OWNER)
    except StorageError as exc:
        raise click.ClickException(exc.message) from exc
    click.echo(f"Removed {deleted} compare entries")


if __name__ == "__main__":
    cli()
