"""Pytest configuration and fixtures for all tests."""

import os
import tempfile
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest
from tenacity import wait_none

# Never write the rotating log file from tests
os.environ["LOG_FILE"] = ""

from charter_ledger.lib.db import get_session, init_db, reset_db, reset_engine  # noqa: E402
from charter_ledger.models import BankAccount, Company, Project  # noqa: E402
from charter_ledger.services.account_resolver import AccountResolver  # noqa: E402
from charter_ledger.services.event_store import PostingContext  # noqa: E402
from charter_ledger.services.fx_resolver import FxResolver  # noqa: E402
from charter_ledger.services.journal_posting_service import (  # noqa: E402
    initialize_chart_of_accounts,
)
from tests.fakes import FakeRateProvider  # noqa: E402


@pytest.fixture(scope="session", autouse=True)
def setup_test_database():
    """Initialize a temporary database for the test session."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as tmp:
        test_db_path = Path(tmp.name)

    # Set environment variable for test database BEFORE initializing
    os.environ["CHARTER_LEDGER_DB_PATH"] = str(test_db_path)

    reset_engine()
    init_db(test_db_path)

    yield test_db_path

    reset_engine()
    if test_db_path.exists():
        test_db_path.unlink()


@pytest.fixture(autouse=True)
def reset_database_between_tests(setup_test_database):
    """Recreate all tables before each test."""
    reset_engine()
    reset_db(setup_test_database)

    yield

    reset_engine()


@pytest.fixture
def session():
    """Session with the default chart of accounts seeded and committed."""
    db = get_session()
    initialize_chart_of_accounts(db)
    db.commit()

    yield db

    db.rollback()
    db.close()


@pytest.fixture
def charter_company(session):
    """Company owning the charters and projects."""
    company = Company(name="Andaman Charters Co., Ltd.")
    session.add(company)
    session.commit()
    return company


@pytest.fixture
def bank_company(session):
    """Sister company whose bank account sometimes receives charter money."""
    company = Company(name="Phuket Yacht Management Co., Ltd.")
    session.add(company)
    session.commit()
    return company


@pytest.fixture
def charter_bank_account(session, charter_company):
    """THB account of the charter company."""
    account = BankAccount(
        company_id=charter_company.id,
        name="Kasikorn THB",
        account_number="123-4-56789-0",
        gl_account_code="1010",
        currency="THB",
    )
    session.add(account)
    session.commit()
    return account


@pytest.fixture
def sister_bank_account(session, bank_company):
    """THB account of the sister company."""
    account = BankAccount(
        company_id=bank_company.id,
        name="Bangkok Bank THB",
        gl_account_code="1010",
        currency="THB",
    )
    session.add(account)
    session.commit()
    return account


@pytest.fixture
def project(session, charter_company):
    """A yacht operated by the charter company."""
    boat = Project(company_id=charter_company.id, name="Sea Breeze", code="SB")
    session.add(boat)
    session.commit()
    return boat


@pytest.fixture
def rate_provider():
    """Primary provider answering 35.50 THB for any date."""
    return FakeRateProvider(source="api", default=Decimal("35.50"))


@pytest.fixture
def fx_resolver(rate_provider):
    """Resolver backed by the fake provider, without retry delays."""
    return FxResolver(providers=[rate_provider], retry_wait=wait_none())


@pytest.fixture
def context(fx_resolver):
    """Posting context that never touches the network."""
    return PostingContext(fx=fx_resolver, accounts=AccountResolver(retry_wait=wait_none()))


@pytest.fixture
def receipt_date():
    """A business date in the past (rates are historical)."""
    return date(2025, 1, 15)
