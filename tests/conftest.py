"""Pytest fixtures for testing"""

import pytest
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable, Generator, List
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from debt_ledger.api.main import create_app
from debt_ledger.api.dependencies import get_notifier
from debt_ledger.domain.models import DebtAlert
from debt_ledger.infrastructure.database.models import Base, Customer, Debt
from debt_ledger.infrastructure.database.session import get_db
from debt_ledger.services.customers import create_customer


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class RecordingNotifier:
    """Notifier double that keeps alerts instead of sending SMS"""

    def __init__(self):
        self.alerts: List[DebtAlert] = []

    def notify(self, alert: DebtAlert) -> None:
        self.alerts.append(alert)


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


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
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def client(db: Session, notifier: RecordingNotifier) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier
    return TestClient(app)


@pytest.fixture
def customer(db: Session) -> Customer:
    """Customer with no debts and no credit"""
    return create_customer(db, name="Amina Otieno", phone="+254700000001")


@pytest.fixture
def make_debts(db: Session) -> Callable[..., List[Debt]]:
    """
    Insert unpaid debts directly with explicit, increasing created_at.

    Amounts are given oldest first; rows are inserted in reverse so that
    id order disagrees with FIFO order.
    """
    base_time = datetime(2025, 1, 1, 9, 0, 0)

    def _make(customer: Customer, *amounts: str) -> List[Debt]:
        debts = [
            Debt(
                customer_id=customer.id,
                original_amount=Decimal(amount),
                amount=Decimal(amount),
                description=f"Debt {i + 1}",
                is_paid=False,
                created_at=base_time + timedelta(days=i),
            )
            for i, amount in enumerate(amounts)
        ]
        for debt in reversed(debts):
            db.add(debt)
        db.commit()
        return debts

    return _make
