"""Pydantic schemas for API request/response validation"""

from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from debt_ledger.domain.models import CreditTransactionType, PaymentMethod


class ORMModel(BaseModel):
    """Response base that reads ORM rows and domain dataclasses by attribute"""

    model_config = ConfigDict(from_attributes=True)


# Requests


class CustomerCreateRequest(BaseModel):
    """Request body for POST /v1/customers"""

    name: str = Field(..., min_length=1, description="Customer display name")
    phone: str = Field(..., min_length=3, description="Phone number used for notifications")
    email: Optional[str] = None


class PaymentCreateRequest(BaseModel):
    """Request body for POST /v1/payments"""

    customer_id: int = Field(..., gt=0)
    amount: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2, description="Money received")
    method: PaymentMethod = PaymentMethod.CASH
    description: Optional[str] = None
    reference: Optional[str] = None


class CreditApplicationRequest(BaseModel):
    """Request body for POST /v1/customers/{customer_id}/apply-credit"""

    credit_amount: Optional[Decimal] = Field(
        None, gt=0, max_digits=12, decimal_places=2, description="Apply at most this much credit"
    )


class CreditAdjustmentRequest(BaseModel):
    """Request body for POST /v1/customers/{customer_id}/credit-adjustments"""

    amount: Decimal = Field(..., max_digits=12, decimal_places=2, description="Signed adjustment")
    description: Optional[str] = None


class DebtCreateRequest(BaseModel):
    """Request body for POST /v1/debts"""

    customer_id: int = Field(..., gt=0)
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    description: Optional[str] = None
    due_date: Optional[date] = None


# Responses


class CustomerResponse(ORMModel):
    id: int
    name: str
    phone: str
    email: Optional[str] = None
    credit_balance: Decimal


class CustomerBalanceResponse(ORMModel):
    customer_id: int
    total_debt: Decimal
    credit_balance: Decimal
    net_balance: Decimal
    status: str


class CustomerOverviewResponse(ORMModel):
    """Row of GET /v1/customers"""

    id: int
    name: str
    phone: str
    email: Optional[str] = None
    credit_balance: Decimal
    total_debt: Decimal
    net_balance: Decimal
    status: str
    created_at: datetime
    updated_at: datetime


class DebtSchema(ORMModel):
    """Single debt row"""

    id: int
    customer_id: int
    original_amount: Decimal
    amount: Decimal
    description: Optional[str] = None
    due_date: Optional[date] = None
    is_paid: bool
    created_at: datetime


class OutstandingDebtsResponse(BaseModel):
    customer_id: int
    total_outstanding: Decimal
    debts: List[DebtSchema]


class PaymentSchema(ORMModel):
    """Single payment row"""

    id: int
    customer_id: int
    amount: Decimal
    applied_to_debt: Decimal
    credit_amount: Decimal
    method: PaymentMethod
    description: Optional[str] = None
    reference: Optional[str] = None
    created_at: datetime


class AffectedDebtSchema(ORMModel):
    debt_id: int
    description: Optional[str] = None
    amount_applied: Decimal
    remaining_amount: Decimal
    fully_paid: bool


class AllocationSummarySchema(ORMModel):
    total_paid: Decimal
    applied_to_debt: Decimal
    credit_consumed: Decimal
    credit_added: Decimal
    previous_credit_balance: Decimal
    new_credit_balance: Decimal
    remaining_total_debt: Decimal
    debts_affected: List[AffectedDebtSchema]


class PaymentResultResponse(BaseModel):
    """Response for POST /v1/payments and POST /v1/customers/{id}/apply-credit"""

    payment: PaymentSchema
    summary: AllocationSummarySchema


class AllocationSchema(ORMModel):
    debt_id: int
    amount: Decimal


class PaymentDetailResponse(PaymentSchema):
    """Response for GET /v1/payments/{payment_id}"""

    allocations: List[AllocationSchema]


class CustomerDetailResponse(ORMModel):
    """Response for GET /v1/customers/{customer_id}"""

    customer: CustomerResponse
    balance: CustomerBalanceResponse
    unpaid_debts: List[DebtSchema]
    recent_payments: List[PaymentSchema]


class CustomerUnpaidDebtsSchema(ORMModel):
    customer: CustomerResponse
    total_unpaid: Decimal
    debts: List[DebtSchema]


class CustomerPaymentsResponse(BaseModel):
    customer_id: int
    total_received: Decimal
    payments: List[PaymentSchema]


class DebtResultResponse(BaseModel):
    """Response for POST /v1/debts"""

    debt: DebtSchema
    credit_applied: Decimal
    final_amount: Decimal


class DebtPaymentEntrySchema(ORMModel):
    payment_id: int
    amount: Decimal
    method: str
    created_at: datetime


class DebtHistoryResponse(ORMModel):
    """Response for GET /v1/debts/{debt_id}/history"""

    debt_id: int
    customer_id: int
    description: Optional[str] = None
    due_date: Optional[date] = None
    original_amount: Decimal
    remaining_amount: Decimal
    is_paid: bool
    allocated_amount: Decimal
    credit_applied: Decimal
    total_paid: Decimal
    percentage_paid: Decimal
    payments: List[DebtPaymentEntrySchema]


class DebtProgressSchema(ORMModel):
    debt_id: int
    description: Optional[str] = None
    original_amount: Decimal
    remaining_amount: Decimal
    paid_amount: Decimal
    percentage_paid: Decimal
    is_paid: bool
    created_at: datetime


class DebtSummaryResponse(ORMModel):
    """Response for GET /v1/customers/{customer_id}/debt-summary"""

    customer_id: int
    total_debts: int
    paid_debts: int
    unpaid_debts: int
    total_original_amount: Decimal
    total_remaining_amount: Decimal
    total_paid_amount: Decimal
    percentage_paid: Decimal
    credit_balance: Decimal
    debts: List[DebtProgressSchema]


class MethodBreakdownSchema(ORMModel):
    method: str
    count: int
    amount: Decimal


class PaymentAnalyticsResponse(ORMModel):
    total_payments: int
    total_received: Decimal
    total_applied_to_debt: Decimal
    total_credit_added: Decimal
    total_credit_consumed: Decimal
    by_method: List[MethodBreakdownSchema]
    by_debts_affected: Dict[int, int]


class DebtAnalyticsResponse(ORMModel):
    total_debts: int
    paid_debts: int
    unpaid_debts: int
    total_original_amount: Decimal
    unpaid_amount: Decimal
    paid_amount: Decimal


class CreditTransactionSchema(ORMModel):
    id: int
    amount: Decimal
    type: CreditTransactionType
    description: Optional[str] = None
    related_debt_id: Optional[int] = None
    related_payment_id: Optional[int] = None
    created_at: datetime


class CreditTransactionsResponse(BaseModel):
    """Response for GET /v1/customers/{customer_id}/credit-transactions"""

    customer_id: int
    credit_balance: Decimal
    transactions: List[CreditTransactionSchema]


class CreditAdjustmentResponse(ORMModel):
    transaction: CreditTransactionSchema
    previous_credit_balance: Decimal
    new_credit_balance: Decimal


class CreditReconciliationResponse(ORMModel):
    customer_id: int
    credit_balance: Decimal
    ledger_total: Decimal
    difference: Decimal
    balanced: bool
