"""Shared steps of every ledger mutation: locking, applying plans, credit bookkeeping"""

import logging
from contextlib import contextmanager
from decimal import Decimal
from typing import Iterator, List, Sequence

from sqlalchemy.orm import Session

from debt_ledger.domain.exceptions import CustomerNotFoundError, InvariantViolationError
from debt_ledger.domain.models import AffectedDebt, AllocationPlan, OutstandingDebt
from debt_ledger.domain.money import to_money
from debt_ledger.infrastructure.database.models import Customer, Debt, Payment
from debt_ledger.infrastructure.database.repositories import (
    CreditTransactionRepository,
    CustomerRepository,
    PaymentRepository,
)
from debt_ledger.infrastructure.database.unit_of_work import transaction_scope
from debt_ledger.infrastructure.observability.metrics import invariant_violation_counter

logger = logging.getLogger(__name__)


@contextmanager
def ledger_transaction(db: Session) -> Iterator[Session]:
    """transaction_scope that also reports aborted bookkeeping"""
    try:
        with transaction_scope(db):
            yield db
    except InvariantViolationError as e:
        invariant_violation_counter.inc()
        logger.error(f"Ledger invariant violated, transaction rolled back: {e}")
        raise


def lock_customer(db: Session, customer_id: int) -> Customer:
    customer = CustomerRepository(db).get_customer_for_update(customer_id)
    if customer is None:
        raise CustomerNotFoundError(customer_id)
    return customer


def to_outstanding(debts: Sequence[Debt]) -> List[OutstandingDebt]:
    return [OutstandingDebt(debt_id=d.id, amount=to_money(d.amount)) for d in debts]


def apply_allocations(
    db: Session,
    payment: Payment,
    debts: Sequence[Debt],
    plan: AllocationPlan,
) -> List[AffectedDebt]:
    """Write one allocation row per debt touched and reduce those debts"""
    payments = PaymentRepository(db)
    by_id = {d.id: d for d in debts}
    affected: List[AffectedDebt] = []

    for allocation in plan.allocations:
        debt = by_id[allocation.debt_id]
        payments.create_allocation(payment_id=payment.id, debt_id=debt.id, amount=allocation.amount)

        debt.amount = allocation.remaining_amount
        debt.is_paid = allocation.fully_paid
        check_debt_bounds(debt)

        affected.append(
            AffectedDebt(
                debt_id=debt.id,
                description=debt.description,
                amount_applied=allocation.amount,
                remaining_amount=allocation.remaining_amount,
                fully_paid=allocation.fully_paid,
            )
        )

    return affected


def check_debt_bounds(debt: Debt) -> None:
    """0 <= amount <= original_amount and is_paid exactly when amount is 0"""
    amount = to_money(debt.amount)
    if amount < 0 or amount > to_money(debt.original_amount):
        raise InvariantViolationError(f"Debt {debt.id} balance {amount} out of bounds")
    if debt.is_paid != (amount == 0):
        raise InvariantViolationError(f"Debt {debt.id} paid flag disagrees with balance {amount}")


def set_credit_balance(customer: Customer, new_balance: Decimal) -> None:
    new_balance = to_money(new_balance)
    if new_balance < 0:
        raise InvariantViolationError(f"Customer {customer.id} credit balance would become {new_balance}")
    customer.credit_balance = new_balance


def assert_credit_ledger_balanced(db: Session, customer: Customer) -> None:
    """Credit balance must equal the running sum of the customer's credit transactions"""
    db.flush()
    ledger_total = CreditTransactionRepository(db).get_ledger_total(customer.id)
    if ledger_total != to_money(customer.credit_balance):
        raise InvariantViolationError(
            f"Customer {customer.id} credit balance {customer.credit_balance} "
            f"does not match credit ledger total {ledger_total}"
        )
