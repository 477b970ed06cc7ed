"""Debt issuance with automatic credit application"""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional, Protocol

from sqlalchemy.orm import Session

from debt_ledger.config import settings
from debt_ledger.domain.exceptions import InvalidAmountError
from debt_ledger.domain.models import CreditTransactionType, DebtAlert
from debt_ledger.domain.money import ZERO, MoneyLike, to_money
from debt_ledger.infrastructure.database.models import Debt
from debt_ledger.infrastructure.database.repositories import CreditTransactionRepository, DebtRepository
from debt_ledger.infrastructure.observability.logging import log_ledger_event
from debt_ledger.infrastructure.observability.metrics import credit_movement_counter, record_debt_issued
from debt_ledger.services.ledger import (
    assert_credit_ledger_balanced,
    check_debt_bounds,
    ledger_transaction,
    lock_customer,
    set_credit_balance,
)

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    """Out-of-band customer notification; must not block the caller"""

    def notify(self, alert: DebtAlert) -> None: ...


@dataclass
class DebtResult:
    debt: Debt
    credit_applied: Decimal
    final_amount: Decimal
    notified: bool = False


def add_debt(
    db: Session,
    customer_id: int,
    amount: MoneyLike,
    description: Optional[str] = None,
    due_date: Optional[date] = None,
    notifier: Optional[Notifier] = None,
    notification_threshold: MoneyLike = None,
) -> DebtResult:
    """
    Create a debt and immediately offset it with any credit the customer holds.

    Only one debt is involved, so this bypasses the FIFO engine: the credit
    applied is min(credit balance, amount), recorded as an APPLIED_TO_DEBT
    credit transaction linked to the new debt rather than as a payment.

    If the debt is not fully covered and the customer's unpaid total reaches
    the notification threshold, `notifier` is called after commit. Notifier
    failures are logged and never fail the issuance.

    Raises:
        CustomerNotFoundError: unknown customer
        InvalidAmountError: amount is zero or negative
    """
    amount = to_money(amount)
    if amount <= 0:
        raise InvalidAmountError(f"Debt amount must be positive: {amount}")
    description = description or "Debt added"
    threshold = to_money(
        settings.debt_notification_threshold if notification_threshold is None else notification_threshold
    )

    alert: Optional[DebtAlert] = None
    with ledger_transaction(db):
        customer = lock_customer(db, customer_id)
        debts = DebtRepository(db)
        debt = debts.create_debt(customer_id, amount, description=description, due_date=due_date)

        credit_balance = to_money(customer.credit_balance)
        credit_applied = ZERO
        if credit_balance > 0:
            credit_applied = min(credit_balance, amount)
            debt.amount = amount - credit_applied
            debt.is_paid = debt.amount == 0
            check_debt_bounds(debt)
            set_credit_balance(customer, credit_balance - credit_applied)

            CreditTransactionRepository(db).create_transaction(
                customer_id=customer_id,
                amount=ZERO - credit_applied,
                type=CreditTransactionType.APPLIED_TO_DEBT,
                description=f"Auto-applied to new debt: {description}",
                related_debt_id=debt.id,
            )
            credit_movement_counter.labels(type=CreditTransactionType.APPLIED_TO_DEBT.value).inc()

        assert_credit_ledger_balanced(db, customer)
        final_amount = to_money(debt.amount)

        if final_amount > 0 and notifier is not None:
            total_unpaid = debts.get_total_unpaid(customer_id)
            if total_unpaid >= threshold:
                alert = DebtAlert(
                    customer_id=customer.id,
                    customer_name=customer.name,
                    phone=customer.phone,
                    total_unpaid=total_unpaid,
                )

    record_debt_issued(amount, credit_applied)
    log_ledger_event(
        "debt_added",
        customer_id,
        debt_id=debt.id,
        amount=amount,
        credit_applied=credit_applied,
        final_amount=final_amount,
    )

    notified = False
    if alert is not None:
        notified = _notify(notifier, alert)

    return DebtResult(debt=debt, credit_applied=credit_applied, final_amount=final_amount, notified=notified)


def _notify(notifier: Notifier, alert: DebtAlert) -> bool:
    """Fire-and-forget: the debt is already committed, so a failure here is only logged"""
    try:
        notifier.notify(alert)
        return True
    except Exception as e:
        logger.warning(
            f"Debt notification failed: {e}",
            extra={"customer_id": alert.customer_id, "step": "debt_notification"},
        )
        return False
