"""Domain models - pure Python dataclasses representing ledger entities"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional

from debt_ledger.domain.money import ZERO


class PaymentMethod(str, Enum):
    """How the money arrived"""

    CASH = "CASH"
    MOBILE_MONEY = "MOBILE_MONEY"
    BANK_TRANSFER = "BANK_TRANSFER"
    OTHER = "OTHER"


class CreditTransactionType(str, Enum):
    """Reason a customer's credit balance changed"""

    OVERPAYMENT_ADDED = "OVERPAYMENT_ADDED"
    APPLIED_TO_DEBT = "APPLIED_TO_DEBT"
    MANUAL_ADJUSTMENT = "MANUAL_ADJUSTMENT"


@dataclass
class OutstandingDebt:
    """Unpaid debt as seen by the allocation engine"""

    debt_id: int
    amount: Decimal  # remaining balance, not the face value


@dataclass
class DebtAllocation:
    """Portion of available funds applied to one debt"""

    debt_id: int
    amount: Decimal
    remaining_amount: Decimal

    @property
    def fully_paid(self) -> bool:
        return self.remaining_amount == 0


@dataclass
class AllocationPlan:
    """Output of a FIFO allocation run"""

    payment_amount: Decimal
    credit_used: Decimal  # credit made available to the run
    allocations: List[DebtAllocation]
    remaining: Decimal  # funds left after the queue was exhausted

    @property
    def available_funds(self) -> Decimal:
        return self.payment_amount + self.credit_used

    @property
    def applied_to_debt(self) -> Decimal:
        return self.available_funds - self.remaining

    @property
    def credit_delta(self) -> Decimal:
        """Net change to the customer's credit balance (negative = consumed)"""
        return self.remaining - self.credit_used


@dataclass
class AffectedDebt:
    """Per-debt outcome reported back to the caller"""

    debt_id: int
    description: Optional[str]
    amount_applied: Decimal
    remaining_amount: Decimal
    fully_paid: bool


@dataclass
class AllocationSummary:
    """Human-facing summary of a payment or credit application"""

    total_paid: Decimal
    applied_to_debt: Decimal
    credit_consumed: Decimal
    credit_added: Decimal
    previous_credit_balance: Decimal
    new_credit_balance: Decimal
    remaining_total_debt: Decimal
    debts_affected: List[AffectedDebt] = field(default_factory=list)


@dataclass
class DebtAlert:
    """Payload handed to the notification collaborator"""

    customer_id: int
    customer_name: str
    phone: str
    total_unpaid: Decimal


@dataclass
class DebtPaymentEntry:
    """One payment that contributed to a debt"""

    payment_id: int
    amount: Decimal
    method: str
    created_at: datetime


@dataclass
class DebtHistory:
    """Payment history and progress of a single debt"""

    debt_id: int
    customer_id: int
    description: Optional[str]
    due_date: Optional[date]
    original_amount: Decimal
    remaining_amount: Decimal
    is_paid: bool
    allocated_amount: Decimal
    credit_applied: Decimal
    total_paid: Decimal
    percentage_paid: Decimal
    payments: List[DebtPaymentEntry] = field(default_factory=list)


@dataclass
class DebtProgress:
    """Compact per-debt line in a customer summary"""

    debt_id: int
    description: Optional[str]
    original_amount: Decimal
    remaining_amount: Decimal
    paid_amount: Decimal
    percentage_paid: Decimal
    is_paid: bool
    created_at: datetime


@dataclass
class DebtSummary:
    """Aggregate debt position of one customer"""

    customer_id: int
    total_debts: int
    paid_debts: int
    unpaid_debts: int
    total_original_amount: Decimal
    total_remaining_amount: Decimal
    total_paid_amount: Decimal
    percentage_paid: Decimal
    credit_balance: Decimal
    debts: List[DebtProgress] = field(default_factory=list)


@dataclass
class CustomerBalance:
    """Net position: positive means the customer holds credit"""

    customer_id: int
    total_debt: Decimal
    credit_balance: Decimal
    net_balance: Decimal
    status: str  # "CREDIT" or "DEBT"


@dataclass
class CustomerOverview:
    """Customer listing row with its net position"""

    id: int
    name: str
    phone: str
    email: Optional[str]
    credit_balance: Decimal
    total_debt: Decimal
    net_balance: Decimal
    status: str
    created_at: datetime
    updated_at: datetime


@dataclass
class MethodBreakdown:
    method: str
    count: int
    amount: Decimal


@dataclass
class PaymentAnalytics:
    """Derived statistics over a set of payments"""

    total_payments: int
    total_received: Decimal
    total_applied_to_debt: Decimal
    total_credit_added: Decimal
    total_credit_consumed: Decimal
    by_method: List[MethodBreakdown] = field(default_factory=list)
    by_debts_affected: Dict[int, int] = field(default_factory=dict)


@dataclass
class DebtAnalytics:
    total_debts: int
    paid_debts: int
    unpaid_debts: int
    total_original_amount: Decimal = ZERO
    unpaid_amount: Decimal = ZERO
    paid_amount: Decimal = ZERO


@dataclass
class CreditReconciliation:
    """Stored credit balance checked against the credit transaction log"""

    customer_id: int
    credit_balance: Decimal
    ledger_total: Decimal
    difference: Decimal

    @property
    def balanced(self) -> bool:
        return self.difference == 0
