"""Pytest fixtures for testing"""

import pytest
from datetime import date, datetime
from typing import Generator
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from loan_core.api.dependencies import get_today
from loan_core.api.main import create_app
from loan_core.infrastructure.database.models import Base
from loan_core.infrastructure.database.session import get_db
from loan_core.domain.models import BankAccount, Client, PaymentFrequency, Transaction, TransactionType


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Business day the API sees during tests
TODAY = date(2024, 3, 15)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db: Session) -> TestClient:
    """Create FastAPI test client with test database and a fixed business day"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_today] = lambda: TODAY
    return TestClient(app)


@pytest.fixture
def borrower() -> Client:
    """Client on a 10% monthly loan"""
    return Client(
        id="client-a",
        name="Ana Rojas",
        cedula="1010",
        credit_start_date=date(2024, 1, 10),
        interest_rate=10.0,
        payment_frequency=PaymentFrequency.MONTHLY,
    )


@pytest.fixture
def second_borrower() -> Client:
    return Client(id="client-b", name="Luis Pardo", cedula="2020", credit_start_date=date(2024, 3, 10))


@pytest.fixture
def vault() -> BankAccount:
    return BankAccount(id="bank-1", name="Caja principal", balance=500_000, is_cash=True)


@pytest.fixture
def disbursed_chain(borrower: Client) -> list[Transaction]:
    """1.000.000 lent, then 200.000 of capital and 100.000 of interest collected"""
    return [
        Transaction(
            id="t1",
            client_id=borrower.id,
            date=date(2024, 1, 10),
            type=TransactionType.DISBURSEMENT,
            amount=1_000_000,
            balance_after=1_000_000,
            created_at=datetime(2024, 1, 10, 9, 0),
        ),
        Transaction(
            id="t2",
            client_id=borrower.id,
            date=date(2024, 2, 10),
            type=TransactionType.PAYMENT_CAPITAL,
            amount=200_000,
            interest_paid=100_000,
            capital_paid=200_000,
            balance_after=800_000,
            created_at=datetime(2024, 2, 10, 9, 0),
        ),
    ]
