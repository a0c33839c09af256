"""Tests for the click command-line interface and form parsing."""

import csv
import json
from decimal import Decimal

import pytest
from click.testing import CliRunner
from sqlalchemy import create_engine

from pathpay.data_models import AmortizationMethod, RepaymentFrequency
from pathpay.exceptions import InvalidInputError
from pathpay.main import build_loan_input, cli, parse_amount

LOAN_ARGS = ["-p", "10,000,000", "-r", "12", "-t", "12", "-s", "01/01/2024"]


@pytest.fixture
def run(database_url):
    runner = CliRunner()

    def invoke(*args, **kwargs):
        return runner.invoke(cli, ["--database-url", database_url, *args], **kwargs)

    return invoke


class TestBuildLoanInput:
    def test_complete_form(self):
        loan = build_loan_input("250k", "24", "7.5%", "01/02/2024", "weekly", "equalPrincipal")
        assert loan.principal == Decimal("250000")
        assert loan.annual_rate_percent == Decimal("7.5")
        assert loan.term_months == 24
        assert loan.repayment_frequency is RepaymentFrequency.WEEKLY
        assert loan.amortization_method is AmortizationMethod.EQUAL_PRINCIPAL
        assert loan.start_date == "01/02/2024"

    @pytest.mark.parametrize(
        "fields",
        [
            ("", "12", "5", "01/01/2024"),
            ("1000", " ", "5", "01/01/2024"),
            ("1000", "12", None, "01/01/2024"),
            ("1000", "12", "5", ""),
        ],
    )
    def test_blank_field_suppresses_calculation(self, fields):
        assert build_loan_input(*fields) is None

    def test_start_date_optional_when_not_required(self):
        loan = build_loan_input("1000", "12", "5", None, require_start_date=False)
        assert loan.start_date is None

    @pytest.mark.parametrize("fields", [("lots", "12", "5", "01/01/2024"), ("1000", "a year", "5", "01/01/2024")])
    def test_malformed_numbers(self, fields):
        with pytest.raises(InvalidInputError):
            build_loan_input(*fields)

    def test_term_is_capped(self):
        assert build_loan_input("1000", "600", "5", None, require_start_date=False).term_months == 600
        with pytest.raises(InvalidInputError) as excinfo:
            build_loan_input("1000", "999999999", "5", "01/01/2024")
        assert excinfo.value.field == "term_months"

    def test_parse_amount_suffixes(self):
        assert parse_amount("1.5m") == Decimal("1500000")
        assert parse_amount(" 2,500 ") == Decimal("2500")


class TestScheduleCommand:
    def test_prints_summary_and_table(self, run):
        result = run("schedule", *LOAN_ARGS)
        assert result.exit_code == 0, result.output
        assert "888487.89" in result.output
        assert "10661854.68" in result.output
        assert "Pay-off date       : 01/01/2025" in result.output
        assert "12\t01/12/2024\t888487.89" in result.output

    def test_without_start_date(self, run):
        result = run("schedule", "-p", "1200", "-r", "0", "-t", "12")
        assert result.exit_code == 0, result.output
        assert "DD/MM/YYYY" in result.output
        assert "Monthly payment    : 100.00" in result.output

    def test_equal_principal_label(self, run):
        result = run("schedule", "-p", "1200000", "-r", "12", "-t", "12", "-m", "equal_principal")
        assert result.exit_code == 0, result.output
        assert "First monthly payment: 112000.00" in result.output

    def test_invalid_amount(self, run):
        result = run("schedule", "-p", "abc", "-r", "12", "-t", "12")
        assert result.exit_code == 2
        assert "Invalid amount" in result.output

    def test_non_positive_term(self, run):
        result = run("schedule", "-p", "1000", "-r", "12", "-t", "0")
        assert result.exit_code == 2
        assert "Term must be positive" in result.output

    def test_json_export(self, run, tmp_path):
        path = tmp_path / "schedule.json"
        result = run("schedule", *LOAN_ARGS, "--output", str(path))
        assert result.exit_code == 0, result.output
        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["summary"]["periodic_payment"] == 888487.89
        assert data["summary"]["payoff_date"] == "01/01/2025"
        assert len(data["schedule"]) == 12
        assert data["schedule"][-1]["balance"] == 0.0

    def test_csv_export(self, run, tmp_path):
        path = tmp_path / "schedule.csv"
        result = run("schedule", *LOAN_ARGS, "-f", "weekly", "--output", str(path))
        assert result.exit_code == 0, result.output
        with path.open(newline="", encoding="utf-8") as f:
            rows = list(csv.reader(f))
        assert rows[0] == ["Period", "Date", "Payment", "Interest", "Principal", "Balance"]
        assert len(rows) == 53
        assert rows[2][1] == "08/01/2024"

    def test_unsupported_output(self, run, tmp_path):
        result = run("schedule", *LOAN_ARGS, "--output", str(tmp_path / "schedule.txt"))
        assert result.exit_code == 2


class TestSummaryCommand:
    def test_summary_only(self, run):
        result = run("summary", *LOAN_ARGS)
        assert result.exit_code == 0, result.output
        assert "Total interest     : 661854.68" in result.output
        assert "Payment\tInterest" not in result.output

    def test_summary_json(self, run, tmp_path):
        path = tmp_path / "summary.json"
        result = run("summary", *LOAN_ARGS, "--output", str(path))
        assert result.exit_code == 0, result.output
        assert json.loads(path.read_text(encoding="utf-8"))["summary"]["total_interest"] == 661854.68


class TestHistoryCommands:
    def test_save_list_remove_clear(self, run):
        saved = run("schedule", *LOAN_ARGS, "--save", "--title", "Car", "-c", "auto")
        assert saved.exit_code == 0, saved.output
        assert "Saved to history (id 1)" in saved.output
        run("schedule", *LOAN_ARGS, "--save", "--title", "House", "-c", "mortgage")

        listed = run("history", "list")
        assert "[1] Car (auto)" in listed.output
        assert "[2] House (mortgage)" in listed.output
        assert "Pay-off date: 01/01/2025" in listed.output

        assert run("history", "remove", "1").exit_code == 0
        assert run("history", "remove", "1").exit_code == 1
        assert "Car" not in run("history", "list").output

        cleared = run("history", "clear", "--yes")
        assert "Deleted 1 history entries" in cleared.output
        assert "No history found." in run("history", "list").output


class TestCompareCommands:
    def test_cap_and_ranking(self, run):
        for rate in ("12", "10", "14"):
            result = run("schedule", "-p", "1000000", "-r", rate, "-t", "24", "--compare", "--title", f"{rate}%")
            assert result.exit_code == 0, result.output

        rejected = run("schedule", *LOAN_ARGS, "--compare")
        assert rejected.exit_code == 1
        assert "You can only compare up to 3 items" in rejected.output

        listed = run("compare", "list")
        assert listed.exit_code == 0, listed.output
        lines = listed.output.splitlines()
        best = lines.index("    Best value among compared loans")
        worst = lines.index("    Least cost-effective option")
        assert "10%" in "\n".join(lines[best - 7:best])
        assert "14%" in "\n".join(lines[worst - 7:worst])

    def test_remove_and_clear(self, run):
        run("schedule", *LOAN_ARGS, "--compare")
        run("schedule", *LOAN_ARGS, "--compare")
        assert run("compare", "remove", "1").exit_code == 0
        assert "Removed 1 compare entries" in run("compare", "clear").output
        assert "No compare data found." in run("compare", "list").output


READ_ONLY_RECORDS = """
CREATE VIEW loan_records AS
SELECT 1 AS id, 'compare' AS collection, 'local' AS owner, 'Car' AS title,
       'auto' AS category, '{}' AS payload_json, '2024-01-01 00:00:00' AS created_at
UNION ALL
SELECT 2, 'history', 'local', 'House', 'mortgage', '{}', '2024-01-01 00:00:00'
"""


class TestStorageFailures:
    @pytest.fixture
    def read_only_database(self, database_url):
        engine = create_engine(database_url)
        with engine.begin() as conn:
            conn.exec_driver_sql(READ_ONLY_RECORDS)
        engine.dispose()
        return database_url

    @pytest.mark.parametrize(
        "args, store",
        [
            (("history", "remove", "2"), "history"),
            (("history", "clear", "--yes"), "history"),
            (("compare", "remove", "1"), "compare"),
            (("compare", "clear"), "compare"),
        ],
    )
    def test_write_failure_is_reported(self, run, read_only_database, args, store):
        result = run(*args)
        assert result.exit_code == 1
        assert isinstance(result.exception, SystemExit)
        assert f"Could not access the {store} store" in result.output
