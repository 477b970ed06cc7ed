"""Read side: payment history, debt summaries, and analytics derived from the ledger"""

from collections import Counter, defaultdict
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from debt_ledger.domain.exceptions import DebtNotFoundError, PaymentNotFoundError
from debt_ledger.domain.models import (
    CustomerBalance,
    DebtAnalytics,
    DebtHistory,
    DebtPaymentEntry,
    DebtProgress,
    DebtSummary,
    MethodBreakdown,
    PaymentAnalytics,
)
from debt_ledger.domain.money import ZERO, money_sum, percentage, to_money
from debt_ledger.infrastructure.database.models import Customer, Debt, Payment
from debt_ledger.infrastructure.database.repositories import (
    CreditTransactionRepository,
    CustomerRepository,
    DebtRepository,
    PaymentRepository,
)
from debt_ledger.services.customers import get_customer, get_customer_balance
from debt_ledger.utils.date_utils import day_bounds

RECENT_PAYMENTS_LIMIT = 10


@dataclass
class CustomerPayments:
    payments: List[Payment]
    total_received: Decimal


@dataclass
class CustomerDetail:
    customer: Customer
    balance: CustomerBalance
    unpaid_debts: List[Debt]
    recent_payments: List[Payment]


@dataclass
class CustomerUnpaidDebts:
    customer: Customer
    total_unpaid: Decimal
    debts: List[Debt]


def get_outstanding_debts(db: Session, customer_id: int) -> List[Debt]:
    """Unpaid debts for a customer, oldest first (the allocation queue)"""
    get_customer(db, customer_id)
    return DebtRepository(db).get_outstanding_debts(customer_id)


def get_customer_debts(db: Session, customer_id: int) -> List[Debt]:
    """Every debt the customer has had, paid ones included, oldest first"""
    get_customer(db, customer_id)
    return DebtRepository(db).get_debts_by_customer(customer_id)


def get_customer_with_balance(db: Session, customer_id: int) -> CustomerDetail:
    """Customer profile with net position, open debts and the latest payments"""
    customer = get_customer(db, customer_id)
    return CustomerDetail(
        customer=customer,
        balance=get_customer_balance(db, customer_id),
        unpaid_debts=DebtRepository(db).get_outstanding_debts(customer_id),
        recent_payments=PaymentRepository(db).get_payments_by_customer(
            customer_id, limit=RECENT_PAYMENTS_LIMIT
        ),
    )


def get_customers_with_unpaid_debts(db: Session) -> List[CustomerUnpaidDebts]:
    """Customers that still owe money, each with their FIFO queue"""
    debts = DebtRepository(db)
    result = []
    for customer in CustomerRepository(db).get_customers_with_unpaid_debts():
        queue = debts.get_outstanding_debts(customer.id)
        result.append(
            CustomerUnpaidDebts(
                customer=customer,
                total_unpaid=money_sum(d.amount for d in queue),
                debts=queue,
            )
        )
    return result


def get_debt_payment_history(db: Session, debt_id: int) -> DebtHistory:
    """
    Payment history and percentage paid for one debt.

    Percentage paid = (allocations + credit applied at issuance) / original * 100,
    rounded to 2 places, 0% when the original amount is 0.
    """
    debt = DebtRepository(db).get_debt_by_id(debt_id)
    if debt is None:
        raise DebtNotFoundError(debt_id)

    allocations = PaymentRepository(db).get_allocations_for_debt(debt_id)
    allocated = money_sum(a.amount for a in allocations)
    credit_applied = CreditTransactionRepository(db).get_credit_applied_at_issuance(debt_id)
    total_paid = allocated + credit_applied

    return DebtHistory(
        debt_id=debt.id,
        customer_id=debt.customer_id,
        description=debt.description,
        due_date=debt.due_date,
        original_amount=to_money(debt.original_amount),
        remaining_amount=to_money(debt.amount),
        is_paid=debt.is_paid,
        allocated_amount=allocated,
        credit_applied=credit_applied,
        total_paid=total_paid,
        percentage_paid=percentage(total_paid, debt.original_amount),
        payments=[
            DebtPaymentEntry(
                payment_id=a.payment_id,
                amount=to_money(a.amount),
                method=a.payment.method.value,
                created_at=a.payment.created_at,
            )
            for a in allocations
        ],
    )


def get_customer_debt_summary(db: Session, customer_id: int) -> DebtSummary:
    """Aggregate paid/unpaid position across every debt a customer has had"""
    customer = get_customer(db, customer_id)
    debts = DebtRepository(db).get_debts_by_customer(customer_id)

    progress = []
    for debt in debts:
        original = to_money(debt.original_amount)
        remaining = to_money(debt.amount)
        progress.append(
            DebtProgress(
                debt_id=debt.id,
                description=debt.description,
                original_amount=original,
                remaining_amount=remaining,
                paid_amount=original - remaining,
                percentage_paid=percentage(original - remaining, original),
                is_paid=debt.is_paid,
                created_at=debt.created_at,
            )
        )

    total_original = money_sum(p.original_amount for p in progress)
    total_remaining = money_sum(p.remaining_amount for p in progress)
    paid_count = sum(1 for p in progress if p.is_paid)

    return DebtSummary(
        customer_id=customer_id,
        total_debts=len(progress),
        paid_debts=paid_count,
        unpaid_debts=len(progress) - paid_count,
        total_original_amount=total_original,
        total_remaining_amount=total_remaining,
        total_paid_amount=total_original - total_remaining,
        percentage_paid=percentage(total_original - total_remaining, total_original),
        credit_balance=to_money(customer.credit_balance),
        debts=progress,
    )


def get_customer_payments(db: Session, customer_id: int) -> CustomerPayments:
    get_customer(db, customer_id)
    payments = PaymentRepository(db)
    return CustomerPayments(
        payments=payments.get_payments_by_customer(customer_id),
        total_received=payments.get_total_received(customer_id),
    )


def get_payment_with_allocations(db: Session, payment_id: int) -> Payment:
    payment = PaymentRepository(db).get_payment_by_id(payment_id)
    if payment is None:
        raise PaymentNotFoundError(payment_id)
    return payment


def get_payment_analytics(
    db: Session,
    customer_id: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> PaymentAnalytics:
    """
    Group payments by method and by how many debts each one touched.

    Credit consumed/added come from each payment's signed credit_amount.
    """
    if customer_id is not None:
        get_customer(db, customer_id)
    start, end = day_bounds(start_date, end_date)
    payments = PaymentRepository(db).get_payments(customer_id=customer_id, start=start, end=end)

    method_counts: Dict[str, int] = defaultdict(int)
    method_amounts: Dict[str, Decimal] = defaultdict(lambda: ZERO)
    debts_affected: Counter = Counter()
    credit_added = ZERO
    credit_consumed = ZERO

    for payment in payments:
        method = payment.method.value
        method_counts[method] += 1
        method_amounts[method] += to_money(payment.amount)
        debts_affected[len(payment.allocations)] += 1

        credit_amount = to_money(payment.credit_amount)
        if credit_amount > 0:
            credit_added += credit_amount
        elif credit_amount < 0:
            credit_consumed -= credit_amount

    return PaymentAnalytics(
        total_payments=len(payments),
        total_received=money_sum(p.amount for p in payments),
        total_applied_to_debt=money_sum(p.applied_to_debt for p in payments),
        total_credit_added=credit_added,
        total_credit_consumed=credit_consumed,
        by_method=[
            MethodBreakdown(method=method, count=method_counts[method], amount=method_amounts[method])
            for method in sorted(method_counts)
        ],
        by_debts_affected=dict(sorted(debts_affected.items())),
    )


def get_debt_analytics(db: Session, customer_id: Optional[int] = None) -> DebtAnalytics:
    if customer_id is not None:
        get_customer(db, customer_id)
    debts = DebtRepository(db).get_debts(customer_id)

    unpaid = [d for d in debts if not d.is_paid]
    total_original = money_sum(d.original_amount for d in debts)
    unpaid_amount = money_sum(d.amount for d in unpaid)

    return DebtAnalytics(
        total_debts=len(debts),
        paid_debts=len(debts) - len(unpaid),
        unpaid_debts=len(unpaid),
        total_original_amount=total_original,
        unpaid_amount=unpaid_amount,
        paid_amount=total_original - unpaid_amount,
    )
