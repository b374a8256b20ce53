import hmac
import logging
import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlmodel import Session

from credit_gate.config import settings
from credit_gate.database import get_session
from credit_gate.errors import Forbidden, Unauthorized
from credit_gate.limiter import limiter
from credit_gate.schemas import (
    AccountBalance,
    AdminCreditRequest,
    AuditResponse,
    BalanceResponse,
    BootstrapRequest,
    BootstrapResponse,
    NewBalanceResponse,
    TransactionRead,
)
from credit_gate.security import get_caller_id
from credit_gate.services.access import access_gate
from credit_gate.services.account_service import bootstrap_admin, get_account
from credit_gate.services.history import history_service
from credit_gate.services.ledger import balance_engine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.post("/credits/add", response_model=NewBalanceResponse)
@limiter.limit("60/minute")
def admin_add_credits(
    request: Request,
    request_data: AdminCreditRequest,
    caller_id: Optional[uuid.UUID] = Depends(get_caller_id),
    session: Session = Depends(get_session)
):
    """
    Adds credits to any account, including disabled or unapproved ones.
    """
    admin = access_gate.require_admin(session, caller_id)
    admin_id = admin.id
    target = get_account(session, request_data.account_id)

    new_balance = balance_engine.credit(
        session,
        target.id,
        request_data.amount,
        description=request_data.description or "Admin credit addition",
        actor=admin_id
    )

    return {"account_id": request_data.account_id, "new_balance": new_balance}


@router.post("/credits/deduct", response_model=NewBalanceResponse)
@limiter.limit("60/minute")
def admin_deduct_credits(
    request: Request,
    request_data: AdminCreditRequest,
    caller_id: Optional[uuid.UUID] = Depends(get_caller_id),
    session: Session = Depends(get_session)
):
    """
    Removes credits from any account. Never takes a balance below zero.
    """
    admin = access_gate.require_admin(session, caller_id)
    admin_id = admin.id
    target = get_account(session, request_data.account_id)

    new_balance = balance_engine.debit(
        session,
        target.id,
        request_data.amount,
        description=request_data.description or "Admin credit deduction",
        actor=admin_id
    )

    return {"account_id": request_data.account_id, "new_balance": new_balance}


@router.get("/credits", response_model=List[AccountBalance])
@limiter.limit("50/minute")
def list_balances(
    request: Request,
    skip: int = Query(default=0, ge=0, description="Number of records to skip"),
    limit: int = Query(default=100, ge=1, le=500, description="Max records to return"),
    caller_id: Optional[uuid.UUID] = Depends(get_caller_id),
    session: Session = Depends(get_session)
):
    """
    Every account with its balance, for the admin credit manager.
    """
    access_gate.require_admin(session, caller_id)

    return [
        {
            "account_id": account.id,
            "email": account.email,
            "full_name": account.full_name,
            "approval_status": account.approval_status,
            "is_admin": account.is_admin,
            "is_disabled": account.is_disabled,
            "balance": balance
        }
        for account, balance in balance_engine.list_balances(session, limit=limit, offset=skip)
    ]


@router.get("/accounts/{account_id}/balance", response_model=BalanceResponse)
@limiter.limit("100/minute")
def get_account_balance(
    request: Request,
    account_id: uuid.UUID,
    caller_id: Optional[uuid.UUID] = Depends(get_caller_id),
    session: Session = Depends(get_session)
):
    access_gate.require_admin(session, caller_id)
    get_account(session, account_id)

    return {"balance": balance_engine.get_balance(session, account_id)}


@router.get("/accounts/{account_id}/transactions", response_model=List[TransactionRead])
@limiter.limit("50/minute")
def get_account_transactions(
    request: Request,
    account_id: uuid.UUID,
    limit: int = Query(default=settings.HISTORY_LIMIT, ge=1, le=settings.HISTORY_LIMIT, description="Max records to return"),
    caller_id: Optional[uuid.UUID] = Depends(get_caller_id),
    session: Session = Depends(get_session)
):
    """
    Transaction history of any account. Owners may also read their own here.
    """
    access_gate.require_reader(session, caller_id, account_id)

    return history_service.recent(session, account_id, limit)


@router.get("/accounts/{account_id}/audit", response_model=AuditResponse)
@limiter.limit("20/minute")
def audit_account(
    request: Request,
    account_id: uuid.UUID,
    caller_id: Optional[uuid.UUID] = Depends(get_caller_id),
    session: Session = Depends(get_session)
):
    """
    Replays the account's transactions and compares them with the stored balance.
    """
    access_gate.require_admin(session, caller_id)
    get_account(session, account_id)

    report = balance_engine.audit(session, account_id)
    return {
        "account_id": report.account_id,
        "consistent": report.consistent,
        "stored_balance": report.stored_balance,
        "replayed_balance": report.replayed_balance,
        "transaction_count": report.transaction_count,
        "mismatches": report.mismatches
    }


@router.post("/bootstrap", response_model=BootstrapResponse)
@limiter.limit("5/hour")
def bootstrap(
    request: Request,
    request_data: BootstrapRequest,
    session: Session = Depends(get_session)
):
    """
    Creates or promotes an admin account and seeds its opening balance once.
    Protected by ADMIN_BOOTSTRAP_SECRET instead of a token.
    """
    expected = settings.ADMIN_BOOTSTRAP_SECRET
    if not expected:
        raise Forbidden("Admin bootstrap is not configured")

    if not hmac.compare_digest(expected.encode(), request_data.secret_key.encode()):
        logger.warning(f"Bootstrap attempt with invalid secret for {request_data.email}")
        raise Unauthorized("Invalid bootstrap secret")

    account, balance, seeded = bootstrap_admin(session, request_data.email, request_data.full_name)

    return {
        "success": True,
        "message": "Admin seeded with opening balance" if seeded else "Admin already seeded, balance unchanged",
        "account_id": account.id,
        "balance": balance,
        "seeded": seeded
    }
