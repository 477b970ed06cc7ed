"""Debt endpoints: issuance with auto-credit, history, analytics"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from debt_ledger.api.v1.schemas import (
    DebtAnalyticsResponse,
    DebtCreateRequest,
    DebtHistoryResponse,
    DebtResultResponse,
    DebtSchema,
)
from debt_ledger.api.dependencies import BackgroundTaskNotifier, get_notifier, get_request_id
from debt_ledger.infrastructure.database.session import get_db
from debt_ledger.domain.exceptions import CustomerNotFoundError, DebtNotFoundError, InvalidAmountError
from debt_ledger.services import debts as debt_service
from debt_ledger.services import queries

router = APIRouter()


@router.post("/debts", response_model=DebtResultResponse, status_code=201)
def add_debt(
    request_body: DebtCreateRequest,
    request: Request,
    db: Session = Depends(get_db),
    notifier: BackgroundTaskNotifier = Depends(get_notifier),
):
    """
    Create a debt; any credit the customer holds is applied to it immediately.

    A debt alert SMS is scheduled in the background when the customer's
    unpaid total reaches the configured threshold.
    """
    request_id = get_request_id(request)

    try:
        result = debt_service.add_debt(
            db,
            customer_id=request_body.customer_id,
            amount=request_body.amount,
            description=request_body.description,
            due_date=request_body.due_date,
            notifier=notifier,
        )

    except CustomerNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    except InvalidAmountError as e:
        logging.warning(f"Invalid debt: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=400, detail=str(e))

    except Exception as e:
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    return DebtResultResponse(
        debt=DebtSchema.model_validate(result.debt),
        credit_applied=result.credit_applied,
        final_amount=result.final_amount,
    )


@router.get("/debts/analytics", response_model=DebtAnalyticsResponse)
def get_debt_analytics(
    customer_id: Optional[int] = Query(None, description="Restrict to one customer"),
    db: Session = Depends(get_db),
):
    try:
        analytics = queries.get_debt_analytics(db, customer_id)
    except CustomerNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return DebtAnalyticsResponse.model_validate(analytics)


@router.get("/debts/{debt_id}/history", response_model=DebtHistoryResponse)
def get_debt_payment_history(debt_id: int, db: Session = Depends(get_db)):
    """
    Retrieve payments applied to a debt.

    Returns:
        Allocations, credit applied at issuance, and percentage paid
    """
    try:
        history = queries.get_debt_payment_history(db, debt_id)
    except DebtNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return DebtHistoryResponse.model_validate(history)
