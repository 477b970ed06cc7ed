"""Customer endpoints: registration, lookup, balances, credit application and adjustments"""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from debt_ledger.api.v1.schemas import (
    AllocationSummarySchema,
    CreditAdjustmentRequest,
    CreditAdjustmentResponse,
    CreditApplicationRequest,
    CreditReconciliationResponse,
    CreditTransactionSchema,
    CreditTransactionsResponse,
    CustomerBalanceResponse,
    CustomerCreateRequest,
    CustomerDetailResponse,
    CustomerOverviewResponse,
    CustomerPaymentsResponse,
    CustomerResponse,
    CustomerUnpaidDebtsSchema,
    DebtSchema,
    DebtSummaryResponse,
    OutstandingDebtsResponse,
    PaymentResultResponse,
    PaymentSchema,
)
from debt_ledger.api.dependencies import get_request_id
from debt_ledger.infrastructure.database.session import get_db
from debt_ledger.domain.exceptions import (
    CustomerNotFoundError,
    InvalidAmountError,
    NoCreditError,
    NoDebtError,
)
from debt_ledger.domain.money import money_sum
from debt_ledger.services import customers as customer_service
from debt_ledger.services import payments as payment_service
from debt_ledger.services import queries

router = APIRouter()


@router.post("/customers", response_model=CustomerResponse, status_code=201)
def create_customer(
    request_body: CustomerCreateRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    """Register a customer with zero credit balance"""
    request_id = get_request_id(request)
    try:
        customer = customer_service.create_customer(
            db, name=request_body.name, phone=request_body.phone, email=request_body.email
        )

    except Exception as e:
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    return CustomerResponse.model_validate(customer)


@router.get("/customers", response_model=List[CustomerOverviewResponse])
def list_customers(db: Session = Depends(get_db)):
    """All customers with their net position, most recently updated first"""
    customers = customer_service.list_customers_with_balance(db)
    return [CustomerOverviewResponse.model_validate(c) for c in customers]


@router.get("/customers/search", response_model=List[CustomerResponse])
def search_customers(
    q: str = Query(..., min_length=1, description="Name or phone fragment"),
    db: Session = Depends(get_db),
):
    """Case-insensitive name match or phone substring, ordered by name"""
    customers = customer_service.search_customers(db, q)
    return [CustomerResponse.model_validate(c) for c in customers]


@router.get("/customers/with-unpaid-debts", response_model=List[CustomerUnpaidDebtsSchema])
def get_customers_with_unpaid_debts(db: Session = Depends(get_db)):
    """Customers that still owe money, each with their open debts oldest first"""
    result = queries.get_customers_with_unpaid_debts(db)
    return [CustomerUnpaidDebtsSchema.model_validate(r) for r in result]


@router.get("/customers/{customer_id}", response_model=CustomerDetailResponse)
def get_customer(customer_id: int, db: Session = Depends(get_db)):
    """Customer profile, balance, open debts and the latest payments"""
    try:
        detail = queries.get_customer_with_balance(db, customer_id)
    except CustomerNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return CustomerDetailResponse.model_validate(detail)


@router.get("/customers/{customer_id}/balance", response_model=CustomerBalanceResponse)
def get_customer_balance(customer_id: int, db: Session = Depends(get_db)):
    """Unpaid debt, credit held, and net position (CREDIT or DEBT)"""
    try:
        balance = customer_service.get_customer_balance(db, customer_id)
    except CustomerNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return CustomerBalanceResponse.model_validate(balance)


@router.get("/customers/{customer_id}/debts", response_model=OutstandingDebtsResponse)
def get_outstanding_debts(
    customer_id: int,
    include_paid: bool = Query(False, description="Also list settled debts"),
    db: Session = Depends(get_db),
):
    """Unpaid debts in allocation order (oldest first), or every debt with include_paid"""
    try:
        if include_paid:
            debts = queries.get_customer_debts(db, customer_id)
        else:
            debts = queries.get_outstanding_debts(db, customer_id)
    except CustomerNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return OutstandingDebtsResponse(
        customer_id=customer_id,
        total_outstanding=money_sum(d.amount for d in debts if not d.is_paid),
        debts=[DebtSchema.model_validate(d) for d in debts],
    )


@router.get("/customers/{customer_id}/debt-summary", response_model=DebtSummaryResponse)
def get_customer_debt_summary(customer_id: int, db: Session = Depends(get_db)):
    try:
        summary = queries.get_customer_debt_summary(db, customer_id)
    except CustomerNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return DebtSummaryResponse.model_validate(summary)


@router.get("/customers/{customer_id}/payments", response_model=CustomerPaymentsResponse)
def get_customer_payments(customer_id: int, db: Session = Depends(get_db)):
    """Payments newest first plus the total money received"""
    try:
        result = queries.get_customer_payments(db, customer_id)
    except CustomerNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return CustomerPaymentsResponse(
        customer_id=customer_id,
        total_received=result.total_received,
        payments=[PaymentSchema.model_validate(p) for p in result.payments],
    )


@router.post("/customers/{customer_id}/apply-credit", response_model=PaymentResultResponse)
def apply_credit_to_debts(
    customer_id: int,
    request: Request,
    request_body: CreditApplicationRequest | None = None,
    db: Session = Depends(get_db),
):
    """
    Spend the customer's credit balance on outstanding debts (FIFO).

    Optional `credit_amount` caps how much credit is used.
    """
    request_id = get_request_id(request)
    amount_override = request_body.credit_amount if request_body else None

    try:
        result = payment_service.apply_credit_to_debts(db, customer_id, amount_override)

    except CustomerNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    except (NoCreditError, NoDebtError, InvalidAmountError) as e:
        logging.warning(f"Credit application rejected: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=400, detail=str(e))

    except Exception as e:
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    return PaymentResultResponse(
        payment=PaymentSchema.model_validate(result.payment),
        summary=AllocationSummarySchema.model_validate(result.summary),
    )


@router.post(
    "/customers/{customer_id}/credit-adjustments",
    response_model=CreditAdjustmentResponse,
    status_code=201,
)
def adjust_credit(
    customer_id: int,
    request_body: CreditAdjustmentRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    """Manual credit correction, recorded as MANUAL_ADJUSTMENT"""
    request_id = get_request_id(request)
    try:
        result = customer_service.adjust_credit(
            db, customer_id, request_body.amount, description=request_body.description
        )

    except CustomerNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    except InvalidAmountError as e:
        logging.warning(f"Credit adjustment rejected: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=400, detail=str(e))

    except Exception as e:
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    return CreditAdjustmentResponse.model_validate(result)


@router.get(
    "/customers/{customer_id}/credit-reconciliation",
    response_model=CreditReconciliationResponse,
)
def reconcile_credit(customer_id: int, db: Session = Depends(get_db)):
    """Compare stored credit balance with the credit transaction log"""
    try:
        reconciliation = customer_service.reconcile_credit(db, customer_id)
    except CustomerNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return CreditReconciliationResponse.model_validate(reconciliation)


@router.get(
    "/customers/{customer_id}/credit-transactions",
    response_model=CreditTransactionsResponse,
)
def get_credit_transactions(customer_id: int, db: Session = Depends(get_db)):
    """Credit log, oldest first, alongside the stored balance it should sum to"""
    try:
        customer = customer_service.get_customer(db, customer_id)
        transactions = customer_service.get_credit_transactions(db, customer_id)
    except CustomerNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return CreditTransactionsResponse(
        customer_id=customer_id,
        credit_balance=customer.credit_balance,
        transactions=[CreditTransactionSchema.model_validate(t) for t in transactions],
    )
