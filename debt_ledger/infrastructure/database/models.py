"""SQLAlchemy ORM models for the customer ledger"""

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

from debt_ledger.domain.models import CreditTransactionType, PaymentMethod

Base = declarative_base()

# NUMERIC(12, 2): cents precision, values returned as Decimal
Money = Numeric(12, 2)


class Customer(Base):
    """Customer holding debts and an optional credit balance"""

    __tablename__ = "customer"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(191), nullable=False)
    phone = Column(String(32), nullable=False, index=True)
    email = Column(String(191), nullable=True)
    credit_balance = Column(Money, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    debts = relationship("Debt", back_populates="customer")
    payments = relationship("Payment", back_populates="customer")
    credit_transactions = relationship("CreditTransaction", back_populates="customer")


class Debt(Base):
    """Single amount owed; amount shrinks as allocations land"""

    __tablename__ = "debt"

    id = Column(Integer, primary_key=True, autoincrement=True)
    customer_id = Column(Integer, ForeignKey("customer.id", ondelete="RESTRICT"), nullable=False, index=True)
    original_amount = Column(Money, nullable=False)
    amount = Column(Money, nullable=False)
    description = Column(Text, nullable=True)
    due_date = Column(Date, nullable=True)
    is_paid = Column(Boolean, nullable=False, default=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    customer = relationship("Customer", back_populates="debts")
    allocations = relationship("PaymentAllocation", back_populates="debt")


class Payment(Base):
    """Inbound money event, real (amount > 0) or credit-sourced (amount = 0)"""

    __tablename__ = "payment"

    id = Column(Integer, primary_key=True, autoincrement=True)
    customer_id = Column(Integer, ForeignKey("customer.id", ondelete="RESTRICT"), nullable=False, index=True)
    amount = Column(Money, nullable=False)
    applied_to_debt = Column(Money, nullable=False, default=0)
    credit_amount = Column(Money, nullable=False, default=0)
    method = Column(Enum(PaymentMethod, name="payment_method"), nullable=False, default=PaymentMethod.CASH)
    description = Column(Text, nullable=True)
    reference = Column(String(191), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), index=True)

    customer = relationship("Customer", back_populates="payments")
    allocations = relationship("PaymentAllocation", back_populates="payment", order_by="PaymentAllocation.id")


class PaymentAllocation(Base):
    """How much of one payment reduced one debt"""

    __tablename__ = "payment_allocation"
    __table_args__ = (UniqueConstraint("payment_id", "debt_id", name="uq_payment_allocation_payment_debt"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    payment_id = Column(Integer, ForeignKey("payment.id", ondelete="RESTRICT"), nullable=False, index=True)
    debt_id = Column(Integer, ForeignKey("debt.id", ondelete="RESTRICT"), nullable=False, index=True)
    amount = Column(Money, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    payment = relationship("Payment", back_populates="allocations")
    debt = relationship("Debt", back_populates="allocations")


class CreditTransaction(Base):
    """Append-only log of credit balance changes"""

    __tablename__ = "credit_transaction"

    id = Column(Integer, primary_key=True, autoincrement=True)
    customer_id = Column(Integer, ForeignKey("customer.id", ondelete="RESTRICT"), nullable=False, index=True)
    amount = Column(Money, nullable=False)  # signed: negative when credit was consumed
    type = Column(Enum(CreditTransactionType, name="credit_transaction_type"), nullable=False)
    description = Column(Text, nullable=True)
    related_debt_id = Column(Integer, ForeignKey("debt.id", ondelete="SET NULL"), nullable=True)
    related_payment_id = Column(Integer, ForeignKey("payment.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), index=True)

    customer = relationship("Customer", back_populates="credit_transactions")
