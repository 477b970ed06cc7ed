"""Payment recording and credit application - the write side of the allocation engine"""

from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Union

from sqlalchemy.orm import Session

from debt_ledger.domain.allocation import allocate_fifo, total_outstanding
from debt_ledger.domain.exceptions import InvalidAmountError, NoCreditError, NoDebtError
from debt_ledger.domain.models import (
    AffectedDebt,
    AllocationPlan,
    AllocationSummary,
    CreditTransactionType,
    PaymentMethod,
)
from debt_ledger.domain.money import ZERO, MoneyLike, to_money
from debt_ledger.infrastructure.database.models import Customer, Payment
from debt_ledger.infrastructure.database.repositories import (
    CreditTransactionRepository,
    DebtRepository,
    PaymentRepository,
)
from debt_ledger.infrastructure.observability.logging import log_ledger_event
from debt_ledger.infrastructure.observability.metrics import (
    credit_movement_counter,
    record_payment as record_payment_metrics,
)
from debt_ledger.services.ledger import (
    apply_allocations,
    assert_credit_ledger_balanced,
    ledger_transaction,
    lock_customer,
    set_credit_balance,
    to_outstanding,
)


@dataclass
class PaymentResult:
    payment: Payment
    summary: AllocationSummary


@dataclass
class CreditApplicationResult:
    payment: Payment
    summary: AllocationSummary


def record_payment(
    db: Session,
    customer_id: int,
    amount: MoneyLike,
    method: Union[PaymentMethod, str] = PaymentMethod.CASH,
    description: Optional[str] = None,
    reference: Optional[str] = None,
) -> PaymentResult:
    """
    Record an inbound payment and allocate it, plus existing credit, FIFO.

    Flow (one transaction, customer row locked):
    1. Lock customer, read current credit balance
    2. Load unpaid debts oldest first
    3. Run the allocation engine over payment + credit
    4. Persist Payment, one PaymentAllocation per debt touched
    5. Reduce debts, replace credit balance with whatever is left over
    6. Write the matching CreditTransaction for the net credit change

    Raises:
        CustomerNotFoundError: unknown customer
        InvalidAmountError: negative amount
    """
    amount = to_money(amount)
    if amount < 0:
        raise InvalidAmountError(f"Payment amount cannot be negative: {amount}")
    method = PaymentMethod(method)

    with ledger_transaction(db):
        customer = lock_customer(db, customer_id)
        previous_credit = to_money(customer.credit_balance)
        queue = DebtRepository(db).get_outstanding_debts(customer_id, lock=True)

        plan = allocate_fifo(to_outstanding(queue), amount, previous_credit)

        payment = PaymentRepository(db).create_payment(
            customer_id=customer_id,
            amount=amount,
            applied_to_debt=plan.applied_to_debt,
            credit_amount=plan.credit_delta,
            method=method,
            description=description or "Payment received",
            reference=reference,
        )
        affected = apply_allocations(db, payment, queue, plan)
        set_credit_balance(customer, previous_credit + plan.credit_delta)

        if plan.credit_delta < 0:
            _write_credit_movement(
                db, customer, payment, plan.credit_delta, CreditTransactionType.APPLIED_TO_DEBT,
                f"Credit applied with payment {payment.id}",
            )
        elif plan.credit_delta > 0:
            _write_credit_movement(
                db, customer, payment, plan.credit_delta, CreditTransactionType.OVERPAYMENT_ADDED,
                f"Overpayment from payment {payment.id}",
            )

        assert_credit_ledger_balanced(db, customer)
        summary = _summarize(db, plan, affected, previous_credit, customer, total_paid=amount)

    record_payment_metrics(method.value, plan.applied_to_debt)
    log_ledger_event(
        "payment_recorded",
        customer_id,
        payment_id=payment.id,
        amount=amount,
        applied_to_debt=plan.applied_to_debt,
        credit_delta=plan.credit_delta,
        debts_affected=len(affected),
    )
    return PaymentResult(payment=payment, summary=summary)


def apply_credit_to_debts(
    db: Session,
    customer_id: int,
    amount_override: MoneyLike = None,
) -> CreditApplicationResult:
    """
    Spend the customer's credit balance on outstanding debts, oldest first.

    Amount applied is min(override or balance, balance, total outstanding).
    A zero-amount Payment row is still written so every allocation traces
    back to a payment id.

    Raises:
        CustomerNotFoundError: unknown customer
        NoCreditError: credit balance is zero
        NoDebtError: nothing outstanding
        InvalidAmountError: override is zero or negative
    """
    with ledger_transaction(db):
        customer = lock_customer(db, customer_id)
        previous_credit = to_money(customer.credit_balance)
        if previous_credit <= 0:
            raise NoCreditError("Customer has no credit balance")

        queue = DebtRepository(db).get_outstanding_debts(customer_id, lock=True)
        outstanding = to_outstanding(queue)
        outstanding_total = total_outstanding(outstanding)
        if outstanding_total <= 0:
            raise NoDebtError("Customer has no unpaid debts")

        requested = previous_credit if amount_override is None else to_money(amount_override)
        if requested <= 0:
            raise InvalidAmountError(f"Credit amount to apply must be positive: {requested}")
        credit_to_apply = min(requested, previous_credit, outstanding_total)

        plan = allocate_fifo(outstanding, ZERO, credit_to_apply)

        payment = PaymentRepository(db).create_payment(
            customer_id=customer_id,
            amount=ZERO,
            applied_to_debt=plan.applied_to_debt,
            credit_amount=plan.credit_delta,
            method=PaymentMethod.OTHER,
            description="Credit balance applied to debts",
        )
        affected = apply_allocations(db, payment, queue, plan)
        set_credit_balance(customer, previous_credit + plan.credit_delta)
        _write_credit_movement(
            db, customer, payment, plan.credit_delta, CreditTransactionType.APPLIED_TO_DEBT,
            f"Credit applied to {len(affected)} debt(s)",
        )

        assert_credit_ledger_balanced(db, customer)
        summary = _summarize(db, plan, affected, previous_credit, customer, total_paid=ZERO)

    record_payment_metrics(PaymentMethod.OTHER.value, plan.applied_to_debt, source="credit_application")
    log_ledger_event(
        "credit_applied",
        customer_id,
        payment_id=payment.id,
        applied_to_debt=plan.applied_to_debt,
        previous_credit=previous_credit,
        new_credit=summary.new_credit_balance,
    )
    return CreditApplicationResult(payment=payment, summary=summary)


def _write_credit_movement(
    db: Session,
    customer: Customer,
    payment: Payment,
    amount: Decimal,
    type: CreditTransactionType,
    description: str,
) -> None:
    CreditTransactionRepository(db).create_transaction(
        customer_id=customer.id,
        amount=amount,
        type=type,
        description=description,
        related_payment_id=payment.id,
    )
    credit_movement_counter.labels(type=type.value).inc()


def _summarize(
    db: Session,
    plan: AllocationPlan,
    affected: List[AffectedDebt],
    previous_credit: Decimal,
    customer: Customer,
    total_paid: Decimal,
) -> AllocationSummary:
    remaining_debt = DebtRepository(db).get_total_unpaid(customer.id)
    return AllocationSummary(
        total_paid=total_paid,
        applied_to_debt=plan.applied_to_debt,
        credit_consumed=max(ZERO - plan.credit_delta, ZERO),
        credit_added=max(plan.credit_delta, ZERO),
        previous_credit_balance=previous_credit,
        new_credit_balance=to_money(customer.credit_balance),
        remaining_total_debt=remaining_debt,
        debts_affected=affected,
    )
