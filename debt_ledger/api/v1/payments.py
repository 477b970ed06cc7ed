"""POST /v1/payments - record a payment and allocate it FIFO across debts"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from debt_ledger.api.v1.schemas import (
    AllocationSummarySchema,
    PaymentAnalyticsResponse,
    PaymentCreateRequest,
    PaymentDetailResponse,
    PaymentResultResponse,
    PaymentSchema,
)
from debt_ledger.api.dependencies import get_request_id
from debt_ledger.infrastructure.database.session import get_db
from debt_ledger.domain.exceptions import CustomerNotFoundError, InvalidAmountError, PaymentNotFoundError
from debt_ledger.services import payments as payment_service
from debt_ledger.services import queries

router = APIRouter()


@router.post("/payments", response_model=PaymentResultResponse, status_code=201)
def record_payment(
    request_body: PaymentCreateRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    """
    Record a payment for a customer.

    Flow:
    1. Payment + existing credit are applied to unpaid debts, oldest first
    2. Leftover money becomes the customer's new credit balance
    3. Allocations and credit movements are written in the same transaction
    4. Return the payment and an allocation summary
    """
    request_id = get_request_id(request)

    try:
        result = payment_service.record_payment(
            db,
            customer_id=request_body.customer_id,
            amount=request_body.amount,
            method=request_body.method,
            description=request_body.description,
            reference=request_body.reference,
        )

    except CustomerNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    except InvalidAmountError as e:
        logging.warning(f"Invalid payment: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=400, detail=str(e))

    except Exception as e:
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    return PaymentResultResponse(
        payment=PaymentSchema.model_validate(result.payment),
        summary=AllocationSummarySchema.model_validate(result.summary),
    )


@router.get("/payments/analytics", response_model=PaymentAnalyticsResponse)
def get_payment_analytics(
    customer_id: Optional[int] = Query(None, description="Restrict to one customer"),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    db: Session = Depends(get_db),
):
    """Payments grouped by method and by number of debts affected"""
    try:
        analytics = queries.get_payment_analytics(db, customer_id, start_date, end_date)
    except CustomerNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return PaymentAnalyticsResponse.model_validate(analytics)


@router.get("/payments/{payment_id}", response_model=PaymentDetailResponse)
def get_payment(payment_id: int, db: Session = Depends(get_db)):
    """Payment with the per-debt allocations it produced"""
    try:
        payment = queries.get_payment_with_allocations(db, payment_id)
    except PaymentNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return PaymentDetailResponse.model_validate(payment)
