import logging
import uuid
from datetime import datetime, timezone
from typing import Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from credit_gate.config import settings
from credit_gate.errors import AccountNotFound, Forbidden
from credit_gate.models.account import Account, ApprovalStatus
from credit_gate.services.ledger import balance_engine

logger = logging.getLogger(__name__)


def get_account(session: Session, account_id: uuid.UUID) -> Account:
    account = session.get(Account, account_id)
    if account is None:
        raise AccountNotFound(account_id)
    return account


def _find_by_email(session: Session, email: str) -> Optional[Account]:
    statement = select(Account).where(Account.email == email)
    return session.exec(statement).first()


def get_or_create_account(session: Session, email: str, full_name: Optional[str] = None) -> Account:
    """
    Finds an account by email or creates a pending one.
    Losing the insert race to another request returns the row it created.
    """
    existing = _find_by_email(session, email)

    if existing:
        return existing

    account = Account(email=email, full_name=full_name)
    session.add(account)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        logger.info(f"Account {email} was created concurrently, reusing it")
        existing = _find_by_email(session, email)
        if existing is None:
            raise
        return existing

    session.refresh(account)

    return account


def bootstrap_admin(session: Session, email: str, full_name: Optional[str] = None) -> Tuple[Account, int, bool]:
    """
    Promotes (or creates) an approved admin and grants the opening balance.
    Running it again on a seeded admin keeps the current balance as it is.
    Disabled accounts are refused.
    Returns (account, balance, seeded).
    """
    account = get_or_create_account(session, email, full_name)
    if account.is_disabled:
        logger.warning(f"Refused bootstrap of disabled account {email}")
        raise Forbidden("Cannot bootstrap a disabled account")

    account.is_admin = True
    account.approval_status = ApprovalStatus.APPROVED
    account.updated_at = datetime.now(timezone.utc)
    session.add(account)
    session.commit()
    session.refresh(account)

    balance, seeded = balance_engine.seed(
        session,
        account.id,
        settings.SEED_CREDITS,
        description="Admin bootstrap opening balance",
    )
    session.refresh(account)

    if seeded:
        logger.info(f"Bootstrapped admin {account.email} with {balance} credits")
    else:
        logger.info(f"Admin {account.email} already seeded, balance left at {balance}")

    return account, balance, seeded
