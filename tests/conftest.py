"""Shared fixtures for the PathPay tests.

Fixture loan: 10,000,000 at 12 % p.a. over 12 months, repaid monthly with
equal total payments (1 % per period).
"""

from datetime import date
from decimal import Decimal

import pytest

from pathpay.config import Settings
from pathpay.data_models import AmortizationMethod, LoanInput, RepaymentFrequency
from pathpay.engine import compute_amortization
from pathpay.storage import open_stores


@pytest.fixture
def annuity_loan() -> LoanInput:
    return LoanInput(
        principal=Decimal("10000000"),
        annual_rate_percent=Decimal("12"),
        term_months=12,
        repayment_frequency=RepaymentFrequency.MONTHLY,
        amortization_method=AmortizationMethod.EQUAL_TOTAL,
        start_date=date(2024, 1, 1),
    )


@pytest.fixture
def equal_principal_loan() -> LoanInput:
    return LoanInput(
        principal=Decimal("1200000"),
        annual_rate_percent=Decimal("12"),
        term_months=12,
        repayment_frequency=RepaymentFrequency.MONTHLY,
        amortization_method=AmortizationMethod.EQUAL_PRINCIPAL,
        start_date="15/03/2024",
    )


@pytest.fixture
def annuity_result(annuity_loan):
    return compute_amortization(annuity_loan)


@pytest.fixture
def database_url(tmp_path) -> str:
    return f"sqlite:///{tmp_path / 'pathpay.sqlite3'}"


@pytest.fixture
def stores(database_url):
    return open_stores(database_url)


@pytest.fixture
def app(database_url):
    from pathpay_web.app import create_app

    app = create_app(Settings(database_url=database_url, secret_key="test-secret", log_level="WARNING"))
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()
