"""Data access layer for ledger entities"""

from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, selectinload

from debt_ledger.domain.models import CreditTransactionType, PaymentMethod
from debt_ledger.domain.money import ZERO, to_money
from debt_ledger.infrastructure.database.models import (
    CreditTransaction,
    Customer,
    Debt,
    Payment,
    PaymentAllocation,
)


class CustomerRepository:
    """Repository for customers"""

    def __init__(self, db: Session):
        self.db = db

    def create_customer(self, name: str, phone: str, email: Optional[str] = None) -> Customer:
        """Register a customer with an empty credit balance"""
        db_customer = Customer(name=name, phone=phone, email=email, credit_balance=Decimal("0"))
        self.db.add(db_customer)
        self.db.flush()
        return db_customer

    def get_customer_by_id(self, customer_id: int) -> Optional[Customer]:
        return self.db.query(Customer).filter(Customer.id == customer_id).first()

    def get_customers(self) -> List[Customer]:
        """Most recently updated first"""
        return self.db.query(Customer).order_by(Customer.updated_at.desc(), Customer.id.desc()).all()

    def search_customers(self, query: str) -> List[Customer]:
        """Name (case-insensitive) or phone containing `query`, by name"""
        return (
            self.db.query(Customer)
            .filter(
                or_(
                    func.lower(Customer.name).contains(query.lower(), autoescape=True),
                    Customer.phone.contains(query, autoescape=True),
                )
            )
            .order_by(Customer.name.asc(), Customer.id.asc())
            .all()
        )

    def get_customers_with_unpaid_debts(self) -> List[Customer]:
        return (
            self.db.query(Customer)
            .filter(Customer.debts.any(Debt.is_paid.is_(False)))
            .order_by(Customer.id.asc())
            .all()
        )

    def get_customer_for_update(self, customer_id: int) -> Optional[Customer]:
        """
        Fetch a customer and hold a row lock until the transaction ends.

        Serializes concurrent payments/credit operations on the same
        customer so two writers cannot read the same credit balance.
        """
        return (
            self.db.query(Customer)
            .filter(Customer.id == customer_id)
            .with_for_update()
            .populate_existing()
            .first()
        )


class DebtRepository:
    """Repository for debts and the FIFO debt queue"""

    def __init__(self, db: Session):
        self.db = db

    def create_debt(
        self,
        customer_id: int,
        amount: Decimal,
        description: Optional[str] = None,
        due_date: Optional[date] = None,
    ) -> Debt:
        """Persist a new debt at full face value"""
        db_debt = Debt(
            customer_id=customer_id,
            original_amount=amount,
            amount=amount,
            description=description,
            due_date=due_date,
            is_paid=False,
        )
        self.db.add(db_debt)
        self.db.flush()
        return db_debt

    def get_debt_by_id(self, debt_id: int) -> Optional[Debt]:
        return self.db.query(Debt).filter(Debt.id == debt_id).first()

    def get_outstanding_debts(self, customer_id: int, lock: bool = False) -> List[Debt]:
        """Unpaid debts oldest first; id breaks created_at ties"""
        query = (
            self.db.query(Debt)
            .filter(Debt.customer_id == customer_id, Debt.is_paid.is_(False))
            .order_by(Debt.created_at.asc(), Debt.id.asc())
        )
        if lock:
            query = query.with_for_update().populate_existing()
        return query.all()

    def get_debts_by_customer(self, customer_id: int) -> List[Debt]:
        return (
            self.db.query(Debt)
            .filter(Debt.customer_id == customer_id)
            .order_by(Debt.created_at.asc(), Debt.id.asc())
            .all()
        )

    def get_total_unpaid(self, customer_id: int) -> Decimal:
        total = (
            self.db.query(func.sum(Debt.amount))
            .filter(Debt.customer_id == customer_id, Debt.is_paid.is_(False))
            .scalar()
        )
        return to_money(total)

    def get_unpaid_totals(self) -> Dict[int, Decimal]:
        """Unpaid debt per customer id; customers with nothing owed are absent"""
        rows = (
            self.db.query(Debt.customer_id, func.sum(Debt.amount))
            .filter(Debt.is_paid.is_(False))
            .group_by(Debt.customer_id)
            .all()
        )
        return {customer_id: to_money(total) for customer_id, total in rows}

    def get_debts(self, customer_id: Optional[int] = None) -> List[Debt]:
        """All debts, optionally for a single customer"""
        query = self.db.query(Debt)
        if customer_id is not None:
            query = query.filter(Debt.customer_id == customer_id)
        return query.all()


class PaymentRepository:
    """Repository for payments and their debt allocations"""

    def __init__(self, db: Session):
        self.db = db

    def create_payment(
        self,
        customer_id: int,
        amount: Decimal,
        applied_to_debt: Decimal,
        credit_amount: Decimal,
        method: PaymentMethod,
        description: Optional[str] = None,
        reference: Optional[str] = None,
    ) -> Payment:
        """Persist payment row; flush to obtain its id for allocations"""
        db_payment = Payment(
            customer_id=customer_id,
            amount=amount,
            applied_to_debt=applied_to_debt,
            credit_amount=credit_amount,
            method=method,
            description=description,
            reference=reference,
        )
        self.db.add(db_payment)
        self.db.flush()
        return db_payment

    def create_allocation(self, payment_id: int, debt_id: int, amount: Decimal) -> PaymentAllocation:
        db_allocation = PaymentAllocation(payment_id=payment_id, debt_id=debt_id, amount=amount)
        self.db.add(db_allocation)
        return db_allocation

    def get_payment_by_id(self, payment_id: int) -> Optional[Payment]:
        """Fetch payment with allocations and their debts"""
        return (
            self.db.query(Payment)
            .options(selectinload(Payment.allocations).selectinload(PaymentAllocation.debt))
            .filter(Payment.id == payment_id)
            .first()
        )

    def get_payments_by_customer(self, customer_id: int, limit: Optional[int] = None) -> List[Payment]:
        """Newest first"""
        query = (
            self.db.query(Payment)
            .filter(Payment.customer_id == customer_id)
            .order_by(Payment.created_at.desc(), Payment.id.desc())
        )
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def get_total_received(self, customer_id: int) -> Decimal:
        total = self.db.query(func.sum(Payment.amount)).filter(Payment.customer_id == customer_id).scalar()
        return to_money(total)

    def get_payments(
        self,
        customer_id: Optional[int] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[Payment]:
        """Payments with allocations loaded, filtered for analytics"""
        query = self.db.query(Payment).options(selectinload(Payment.allocations))
        if customer_id is not None:
            query = query.filter(Payment.customer_id == customer_id)
        if start is not None:
            query = query.filter(Payment.created_at >= start)
        if end is not None:
            query = query.filter(Payment.created_at < end)
        return query.order_by(Payment.created_at.asc(), Payment.id.asc()).all()

    def get_allocations_for_debt(self, debt_id: int) -> List[PaymentAllocation]:
        """Allocations against a debt, oldest first, with their payments"""
        return (
            self.db.query(PaymentAllocation)
            .options(selectinload(PaymentAllocation.payment))
            .filter(PaymentAllocation.debt_id == debt_id)
            .order_by(PaymentAllocation.id.asc())
            .all()
        )


class CreditTransactionRepository:
    """Repository for the append-only credit log"""

    def __init__(self, db: Session):
        self.db = db

    def create_transaction(
        self,
        customer_id: int,
        amount: Decimal,
        type: CreditTransactionType,
        description: Optional[str] = None,
        related_debt_id: Optional[int] = None,
        related_payment_id: Optional[int] = None,
    ) -> CreditTransaction:
        db_transaction = CreditTransaction(
            customer_id=customer_id,
            amount=amount,
            type=type,
            description=description,
            related_debt_id=related_debt_id,
            related_payment_id=related_payment_id,
        )
        self.db.add(db_transaction)
        return db_transaction

    def get_transactions_by_customer(self, customer_id: int) -> List[CreditTransaction]:
        return (
            self.db.query(CreditTransaction)
            .filter(CreditTransaction.customer_id == customer_id)
            .order_by(CreditTransaction.created_at.asc(), CreditTransaction.id.asc())
            .all()
        )

    def get_ledger_total(self, customer_id: int) -> Decimal:
        """Running sum of all credit movements for a customer"""
        total = (
            self.db.query(func.sum(CreditTransaction.amount))
            .filter(CreditTransaction.customer_id == customer_id)
            .scalar()
        )
        return to_money(total)

    def get_credit_applied_at_issuance(self, debt_id: int) -> Decimal:
        """Credit that reduced a debt directly when it was created (not via a payment)"""
        total = (
            self.db.query(func.sum(CreditTransaction.amount))
            .filter(
                CreditTransaction.related_debt_id == debt_id,
                CreditTransaction.related_payment_id.is_(None),
                CreditTransaction.type == CreditTransactionType.APPLIED_TO_DEBT,
            )
            .scalar()
        )
        # stored negative because credit was consumed
        return ZERO - to_money(total)
