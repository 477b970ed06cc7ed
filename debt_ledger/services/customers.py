"""Customer registration, balances, and manual credit adjustments"""

from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from debt_ledger.domain.exceptions import CustomerNotFoundError, InvalidAmountError
from debt_ledger.domain.models import (
    CreditReconciliation,
    CreditTransactionType,
    CustomerBalance,
    CustomerOverview,
)
from debt_ledger.domain.money import ZERO, MoneyLike, to_money
from debt_ledger.infrastructure.database.models import CreditTransaction, Customer
from debt_ledger.infrastructure.database.repositories import (
    CreditTransactionRepository,
    CustomerRepository,
    DebtRepository,
)
from debt_ledger.infrastructure.database.unit_of_work import transaction_scope
from debt_ledger.infrastructure.observability.logging import log_ledger_event
from debt_ledger.infrastructure.observability.metrics import credit_movement_counter
from debt_ledger.services.ledger import (
    assert_credit_ledger_balanced,
    ledger_transaction,
    lock_customer,
    set_credit_balance,
)


@dataclass
class CreditAdjustmentResult:
    transaction: CreditTransaction
    previous_credit_balance: Decimal
    new_credit_balance: Decimal


def create_customer(db: Session, name: str, phone: str, email: Optional[str] = None) -> Customer:
    """Register a customer; credit balance always starts at zero"""
    with transaction_scope(db):
        customer = CustomerRepository(db).create_customer(name=name, phone=phone, email=email)
    return customer


def get_customer(db: Session, customer_id: int) -> Customer:
    customer = CustomerRepository(db).get_customer_by_id(customer_id)
    if customer is None:
        raise CustomerNotFoundError(customer_id)
    return customer


def get_customer_balance(db: Session, customer_id: int) -> CustomerBalance:
    """Net position: credit held minus unpaid debt"""
    customer = get_customer(db, customer_id)
    total_debt = DebtRepository(db).get_total_unpaid(customer_id)
    credit_balance = to_money(customer.credit_balance)
    net_balance, status = _net_position(credit_balance, total_debt)
    return CustomerBalance(
        customer_id=customer_id,
        total_debt=total_debt,
        credit_balance=credit_balance,
        net_balance=net_balance,
        status=status,
    )


def list_customers_with_balance(db: Session) -> List[CustomerOverview]:
    """Every customer with its net position, most recently updated first"""
    customers = CustomerRepository(db).get_customers()
    unpaid = DebtRepository(db).get_unpaid_totals()

    overviews = []
    for customer in customers:
        credit_balance = to_money(customer.credit_balance)
        total_debt = unpaid.get(customer.id, ZERO)
        net_balance, status = _net_position(credit_balance, total_debt)
        overviews.append(
            CustomerOverview(
                id=customer.id,
                name=customer.name,
                phone=customer.phone,
                email=customer.email,
                credit_balance=credit_balance,
                total_debt=total_debt,
                net_balance=net_balance,
                status=status,
                created_at=customer.created_at,
                updated_at=customer.updated_at,
            )
        )
    return overviews


def search_customers(db: Session, query: str) -> List[Customer]:
    query = query.strip()
    if not query:
        return []
    return CustomerRepository(db).search_customers(query)


def get_credit_transactions(db: Session, customer_id: int) -> List[CreditTransaction]:
    """Credit log for one customer, oldest first"""
    get_customer(db, customer_id)
    return CreditTransactionRepository(db).get_transactions_by_customer(customer_id)


def _net_position(credit_balance: Decimal, total_debt: Decimal) -> Tuple[Decimal, str]:
    net_balance = credit_balance - total_debt
    return net_balance, "CREDIT" if net_balance >= 0 else "DEBT"


def adjust_credit(
    db: Session,
    customer_id: int,
    amount: MoneyLike,
    description: Optional[str] = None,
) -> CreditAdjustmentResult:
    """
    Manually add (positive) or remove (negative) customer credit.

    Raises:
        CustomerNotFoundError: unknown customer
        InvalidAmountError: zero amount, or the balance would go negative
    """
    amount = to_money(amount)
    if amount == 0:
        raise InvalidAmountError("Credit adjustment cannot be zero")

    with ledger_transaction(db):
        customer = lock_customer(db, customer_id)
        previous = to_money(customer.credit_balance)
        if previous + amount < 0:
            raise InvalidAmountError(
                f"Adjustment of {amount} would leave a negative credit balance (current {previous})"
            )
        set_credit_balance(customer, previous + amount)
        transaction = CreditTransactionRepository(db).create_transaction(
            customer_id=customer_id,
            amount=amount,
            type=CreditTransactionType.MANUAL_ADJUSTMENT,
            description=description or "Manual credit adjustment",
        )
        assert_credit_ledger_balanced(db, customer)
        new_balance = to_money(customer.credit_balance)

    credit_movement_counter.labels(type=CreditTransactionType.MANUAL_ADJUSTMENT.value).inc()
    log_ledger_event("credit_adjusted", customer_id, amount=amount, new_credit=new_balance)
    return CreditAdjustmentResult(
        transaction=transaction,
        previous_credit_balance=previous,
        new_credit_balance=new_balance,
    )


def reconcile_credit(db: Session, customer_id: int) -> CreditReconciliation:
    """Read-only audit: stored credit balance vs. sum of credit transactions"""
    customer = get_customer(db, customer_id)
    credit_balance = to_money(customer.credit_balance)
    ledger_total = CreditTransactionRepository(db).get_ledger_total(customer_id)
    return CreditReconciliation(
        customer_id=customer_id,
        credit_balance=credit_balance,
        ledger_total=ledger_total,
        difference=credit_balance - ledger_total,
    )
