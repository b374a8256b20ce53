import logging
import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlmodel import Session

from credit_gate.config import settings
from credit_gate.database import get_session
from credit_gate.limiter import limiter
from credit_gate.schemas import (
    BalanceResponse,
    FundsCheckResponse,
    TransactionRead,
    UseCreditsRequest,
    UseCreditsResponse,
)
from credit_gate.security import get_caller_id
from credit_gate.services.access import access_gate
from credit_gate.services.history import history_service
from credit_gate.services.ledger import balance_engine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/credits", tags=["Credits"])


@router.get("/balance", response_model=BalanceResponse)
@limiter.limit("100/minute")
def get_balance(
    request: Request,
    caller_id: Optional[uuid.UUID] = Depends(get_caller_id),
    session: Session = Depends(get_session)
):
    """
    Returns the caller's own balance. Clients re-fetch this after every mutation.
    """
    caller = access_gate.require_owner_reader(session, caller_id)

    return {"balance": balance_engine.get_balance(session, caller.id)}


@router.get("/check", response_model=FundsCheckResponse)
@limiter.limit("100/minute")
def check_funds(
    request: Request,
    amount: int = Query(default=settings.COST_PER_USE, description="Credits the next action needs"),
    caller_id: Optional[uuid.UUID] = Depends(get_caller_id),
    session: Session = Depends(get_session)
):
    """
    Pre-flight check before the wizard starts a generation.
    Advisory only: /credits/use checks funds again atomically.
    """
    caller = access_gate.require_self_service(session, caller_id)
    sufficient = balance_engine.has_enough(session, caller.id, amount)

    return {
        "sufficient": sufficient,
        "balance": balance_engine.get_balance(session, caller.id),
        "amount": amount
    }


@router.post("/use", response_model=UseCreditsResponse)
@limiter.limit("30/minute")
def use_credits(
    request: Request,
    request_data: UseCreditsRequest,
    caller_id: Optional[uuid.UUID] = Depends(get_caller_id),
    session: Session = Depends(get_session)
):
    """
    Spends credits from the caller's own balance.
    Answers 402 with the current balance when there is not enough.
    """
    caller = access_gate.require_self_service(session, caller_id)
    account_id = caller.id

    new_balance = balance_engine.use_credits(
        session,
        account_id,
        request_data.amount,
        description=request_data.description
    )

    return {"success": True, "new_balance": new_balance}


@router.get("/transactions", response_model=List[TransactionRead])
@limiter.limit("50/minute")
def get_transactions(
    request: Request,
    limit: int = Query(default=settings.HISTORY_LIMIT, ge=1, le=settings.HISTORY_LIMIT, description="Max records to return"),
    caller_id: Optional[uuid.UUID] = Depends(get_caller_id),
    session: Session = Depends(get_session)
):
    """
    Returns the caller's most recent transactions, newest first.
    """
    caller = access_gate.require_owner_reader(session, caller_id)

    return history_service.recent(session, caller.id, limit)
