"""Integration tests for payment recording and FIFO allocation against the database"""

import pytest
from decimal import Decimal
from unittest.mock import patch
from sqlalchemy.orm import Session
from debt_ledger.domain.exceptions import CustomerNotFoundError, InvalidAmountError, InvariantViolationError
from debt_ledger.domain.models import CreditTransactionType, PaymentMethod
from debt_ledger.infrastructure.database.models import (
    CreditTransaction,
    Customer,
    Debt,
    Payment,
    PaymentAllocation,
)
from debt_ledger.infrastructure.database.repositories import CreditTransactionRepository
from debt_ledger.services.payments import record_payment

pytestmark = pytest.mark.integration


def test_record_payment_allocates_oldest_first(db: Session, customer: Customer, make_debts):
    """Test 100 against 50, 60, 40 settles D1, leaves 10 on D2, leaves D3 untouched"""
    d1, d2, d3 = make_debts(customer, "50", "60", "40")

    result = record_payment(db, customer.id, Decimal("100"), method=PaymentMethod.MOBILE_MONEY)

    db.refresh(d1)
    db.refresh(d2)
    db.refresh(d3)
    assert d1.is_paid is True and d1.amount == 0
    assert d2.is_paid is False and d2.amount == Decimal("10")
    assert d3.is_paid is False and d3.amount == Decimal("40")

    allocations = db.query(PaymentAllocation).filter_by(payment_id=result.payment.id).all()
    assert {a.debt_id: a.amount for a in allocations} == {d1.id: Decimal("50"), d2.id: Decimal("50")}

    summary = result.summary
    assert summary.total_paid == Decimal("100")
    assert summary.applied_to_debt == Decimal("100")
    assert summary.credit_added == 0
    assert summary.new_credit_balance == 0
    assert summary.remaining_total_debt == Decimal("50")
    assert [d.debt_id for d in summary.debts_affected] == [d1.id, d2.id]
    assert result.payment.method == PaymentMethod.MOBILE_MONEY


def test_record_payment_uses_created_at_not_id(db: Session, customer: Customer, make_debts):
    """Test the oldest debt is paid first even though it has the highest id"""
    oldest, newest = make_debts(customer, "30", "30")
    assert oldest.id > newest.id

    record_payment(db, customer.id, Decimal("30"))

    db.refresh(oldest)
    db.refresh(newest)
    assert oldest.is_paid is True
    assert newest.amount == Decimal("30")


def test_record_payment_overpayment_becomes_credit(db: Session, customer: Customer, make_debts):
    """Test paying 60 on a single 40 debt leaves 20 credit and an OVERPAYMENT_ADDED row"""
    (debt,) = make_debts(customer, "40")

    result = record_payment(db, customer.id, Decimal("60"))

    db.refresh(customer)
    db.refresh(debt)
    assert debt.is_paid is True
    assert customer.credit_balance == Decimal("20")
    assert result.payment.applied_to_debt == Decimal("40")
    assert result.payment.credit_amount == Decimal("20")
    assert result.summary.credit_added == Decimal("20")

    transactions = CreditTransactionRepository(db).get_transactions_by_customer(customer.id)
    assert len(transactions) == 1
    assert transactions[0].type == CreditTransactionType.OVERPAYMENT_ADDED
    assert transactions[0].amount == Decimal("20")
    assert transactions[0].related_payment_id == result.payment.id


def test_record_payment_with_no_debts_is_all_credit(db: Session, customer: Customer):
    result = record_payment(db, customer.id, Decimal("75.25"))

    db.refresh(customer)
    assert customer.credit_balance == Decimal("75.25")
    assert result.summary.applied_to_debt == 0
    assert result.summary.debts_affected == []


def test_record_payment_consumes_existing_credit(db: Session, customer: Customer, make_debts):
    """Test prior credit is spent alongside the new payment and logged as APPLIED_TO_DEBT"""
    record_payment(db, customer.id, Decimal("30"))  # no debts yet: 30 credit
    (debt,) = make_debts(customer, "50")

    result = record_payment(db, customer.id, Decimal("25"))

    db.refresh(customer)
    db.refresh(debt)
    assert debt.is_paid is True
    assert customer.credit_balance == Decimal("5")
    assert result.summary.previous_credit_balance == Decimal("30")
    assert result.summary.credit_consumed == Decimal("25")
    assert result.payment.credit_amount == Decimal("-25")

    applied = db.query(CreditTransaction).filter_by(type=CreditTransactionType.APPLIED_TO_DEBT).one()
    assert applied.amount == Decimal("-25")


def test_record_zero_payment_still_writes_payment(db: Session, customer: Customer, make_debts):
    """Test a zero payment with no credit records a payment and changes nothing else"""
    (debt,) = make_debts(customer, "10")

    result = record_payment(db, customer.id, Decimal("0"))

    db.refresh(debt)
    assert db.query(Payment).count() == 1
    assert result.payment.amount == 0
    assert debt.amount == Decimal("10")
    assert db.query(PaymentAllocation).count() == 0
    assert db.query(CreditTransaction).count() == 0


def test_record_payment_negative_amount_rejected(db: Session, customer: Customer):
    with pytest.raises(InvalidAmountError):
        record_payment(db, customer.id, Decimal("-5"))
    assert db.query(Payment).count() == 0


def test_record_payment_unknown_customer(db: Session):
    with pytest.raises(CustomerNotFoundError):
        record_payment(db, 9999, Decimal("10"))
    assert db.query(Payment).count() == 0


def test_record_payment_rolls_back_on_invariant_violation(db: Session, customer: Customer, make_debts):
    """Test a failure mid-transaction leaves no payment, allocation or debt change behind"""
    (debt,) = make_debts(customer, "40")

    with patch(
        "debt_ledger.services.payments.set_credit_balance",
        side_effect=InvariantViolationError("boom"),
    ):
        with pytest.raises(InvariantViolationError):
            record_payment(db, customer.id, Decimal("60"))

    assert db.query(Payment).count() == 0
    assert db.query(PaymentAllocation).count() == 0
    assert db.query(CreditTransaction).count() == 0
    stored = db.query(Debt).filter_by(id=debt.id).one()
    assert stored.amount == Decimal("40")
    assert stored.is_paid is False


def test_credit_balance_matches_ledger_after_many_payments(db: Session, customer: Customer, make_debts):
    """Test credit balance equals the credit transaction total after mixed activity"""
    make_debts(customer, "12.50", "40", "7.25")
    for amount in ("5", "60", "0.01", "10", "3.99"):
        record_payment(db, customer.id, Decimal(amount))

    db.refresh(customer)
    ledger_total = CreditTransactionRepository(db).get_ledger_total(customer.id)
    assert ledger_total == customer.credit_balance
    assert customer.credit_balance == Decimal("19.25")

    for debt in db.query(Debt).all():
        assert 0 <= debt.amount <= debt.original_amount
        assert debt.is_paid == (debt.amount == 0)


def test_allocations_never_exceed_original_amount(db: Session, customer: Customer, make_debts):
    d1, d2 = make_debts(customer, "20", "20")
    for _ in range(5):
        record_payment(db, customer.id, Decimal("7"))

    for debt in (d1, d2):
        allocated = sum(a.amount for a in db.query(PaymentAllocation).filter_by(debt_id=debt.id))
        db.refresh(debt)
        assert allocated + debt.amount == debt.original_amount
