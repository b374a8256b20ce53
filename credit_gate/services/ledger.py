import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlmodel import Session, select

from credit_gate.config import settings
from credit_gate.errors import InvalidAmount, InsufficientBalance, TransientFailure
from credit_gate.models.account import Account
from credit_gate.models.ledger import (
    LedgerBalance,
    CreditTransaction,
    TransactionType,
    CREDIT_TYPES,
    DEBIT_TYPES,
)

logger = logging.getLogger(__name__)


class _Conflict(Exception):
    """Another writer committed to the same balance row first."""


def _aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass
class AuditReport:
    account_id: uuid.UUID
    stored_balance: int
    replayed_balance: int
    transaction_count: int
    mismatches: List[uuid.UUID] = field(default_factory=list)

    @property
    def consistent(self) -> bool:
        return not self.mismatches and self.stored_balance == self.replayed_balance


class BalanceEngine:
    """
    The only writer of `ledger_balance` and `credit_transaction`.

    Every mutation reads the balance row, checks the result stays >= 0,
    writes the row back with a version check and appends the transaction
    in one database transaction. Losing a race to another writer rolls
    back and retries, up to `max_attempts`, before TransientFailure.
    """

    def __init__(self, max_attempts: Optional[int] = None, retry_backoff: Optional[float] = None):
        self.max_attempts = max_attempts or settings.LEDGER_MAX_ATTEMPTS
        self.retry_backoff = settings.LEDGER_RETRY_BACKOFF if retry_backoff is None else retry_backoff

    def get_balance(self, session: Session, account_id: uuid.UUID) -> int:
        """
        Returns the stored balance, 0 if the account was never touched.
        """
        statement = select(LedgerBalance.balance).where(LedgerBalance.account_id == account_id)
        result = session.exec(statement).first()

        return result if result is not None else 0

    def has_enough(self, session: Session, account_id: uuid.UUID, amount: int) -> bool:
        self._check_amount(amount)
        return self.get_balance(session, account_id) >= amount

    def credit(
        self,
        session: Session,
        account_id: uuid.UUID,
        amount: int,
        description: Optional[str] = None,
        actor: Optional[uuid.UUID] = None,
        transaction_type: TransactionType = TransactionType.ADMIN_CREDIT,
    ) -> int:
        if transaction_type not in CREDIT_TYPES:
            raise ValueError(f"{transaction_type} is not a credit type")
        self._check_amount(amount)

        new_balance, _ = self._apply(session, account_id, amount, transaction_type, description, actor)
        return new_balance

    def debit(
        self,
        session: Session,
        account_id: uuid.UUID,
        amount: int,
        description: Optional[str] = None,
        actor: Optional[uuid.UUID] = None,
        transaction_type: TransactionType = TransactionType.ADMIN_DEBIT,
    ) -> int:
        if transaction_type not in DEBIT_TYPES:
            raise ValueError(f"{transaction_type} is not a debit type")
        self._check_amount(amount)

        new_balance, _ = self._apply(session, account_id, -amount, transaction_type, description, actor)
        return new_balance

    def use_credits(
        self,
        session: Session,
        account_id: uuid.UUID,
        amount: int,
        description: Optional[str] = None,
    ) -> int:
        """
        Self-service debit. Never attributed to an actor.
        """
        return self.debit(
            session,
            account_id,
            amount,
            description=description,
            actor=None,
            transaction_type=TransactionType.USAGE_DEBIT,
        )

    def seed(
        self,
        session: Session,
        account_id: uuid.UUID,
        amount: int,
        actor: Optional[uuid.UUID] = None,
        description: str = "Opening balance",
    ) -> Tuple[int, bool]:
        """
        Grants the opening balance once per account.
        Returns (balance, seeded); seeded is False when a seed already exists.
        """
        self._check_amount(amount)
        return self._apply(
            session,
            account_id,
            amount,
            TransactionType.SEED_CREDIT,
            description,
            actor,
            once=True,
        )

    def list_balances(self, session: Session, limit: int = 100, offset: int = 0) -> List[Tuple[Account, int]]:
        statement = (
            select(Account, LedgerBalance.balance)
            .join(LedgerBalance, LedgerBalance.account_id == Account.id, isouter=True)
            .order_by(Account.email)
            .offset(offset)
            .limit(limit)
        )
        return [(account, balance or 0) for account, balance in session.exec(statement).all()]

    def audit(self, session: Session, account_id: uuid.UUID) -> AuditReport:
        """
        Replays the account's transactions from 0 and compares every
        balance_after, and the final sum, with what is stored.
        """
        statement = (
            select(CreditTransaction)
            .where(CreditTransaction.account_id == account_id)
            .order_by(CreditTransaction.sequence)
        )
        transactions = session.exec(statement).all()

        running = 0
        mismatches = []
        for txn in transactions:
            running += txn.amount
            if txn.balance_after != running:
                mismatches.append(txn.id)

        report = AuditReport(
            account_id=account_id,
            stored_balance=self.get_balance(session, account_id),
            replayed_balance=running,
            transaction_count=len(transactions),
            mismatches=mismatches,
        )
        if not report.consistent:
            logger.error(f"Ledger audit failed for account {account_id}: {report}")
        return report

    def _check_amount(self, amount: int) -> None:
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InvalidAmount(amount)

    def _apply(
        self,
        session: Session,
        account_id: uuid.UUID,
        delta: int,
        transaction_type: TransactionType,
        description: Optional[str],
        actor: Optional[uuid.UUID],
        once: bool = False,
    ) -> Tuple[int, bool]:
        last_error: Optional[Exception] = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                new_balance, applied = self._apply_once(
                    session, account_id, delta, transaction_type, description, actor, once
                )
                session.commit()
            except InsufficientBalance as e:
                session.rollback()
                logger.warning(
                    f"Rejected {transaction_type.value} of {-delta} on account {account_id}: "
                    f"balance is {e.balance}"
                )
                raise
            except (_Conflict, OperationalError) as e:
                session.rollback()
                last_error = e
                if attempt == self.max_attempts:
                    break
                logger.warning(f"Ledger conflict on account {account_id} (attempt {attempt}): {e}")
                time.sleep(min(self.retry_backoff * attempt, 1.0))
                continue
            except Exception:
                session.rollback()
                raise

            if applied:
                logger.info(
                    f"Applied {transaction_type.value} {delta:+d} on account {account_id}, "
                    f"balance now {new_balance}"
                )
            return new_balance, applied

        logger.error(f"Giving up on account {account_id} after {self.max_attempts} attempts: {last_error}")
        raise TransientFailure() from last_error

    def _apply_once(
        self,
        session: Session,
        account_id: uuid.UUID,
        delta: int,
        transaction_type: TransactionType,
        description: Optional[str],
        actor: Optional[uuid.UUID],
        once: bool,
    ) -> Tuple[int, bool]:
        row_stmt = (
            select(LedgerBalance)
            .where(LedgerBalance.account_id == account_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        row = session.exec(row_stmt).first()

        if once and self._has_transaction_of_type(session, account_id, transaction_type):
            return (row.balance if row else 0), False

        if row is None:
            if delta < 0:
                raise InsufficientBalance(balance=0, requested=-delta)

            row = LedgerBalance(account_id=account_id, balance=0, version=0)
            session.add(row)
            try:
                session.flush()
            except IntegrityError as e:
                raise _Conflict(f"balance row for {account_id} created concurrently") from e

        current = row.balance
        seen_version = row.version
        new_balance = current + delta
        if new_balance < 0:
            raise InsufficientBalance(balance=current, requested=-delta)

        created_at = self._next_timestamp(row.updated_at)

        result = session.connection().execute(
            update(LedgerBalance)
            .where(LedgerBalance.account_id == account_id)
            .where(LedgerBalance.version == seen_version)
            .values(balance=new_balance, version=seen_version + 1, updated_at=created_at)
        )
        if result.rowcount != 1:
            raise _Conflict(f"balance row for {account_id} changed since version {seen_version}")

        session.add(CreditTransaction(
            account_id=account_id,
            amount=delta,
            balance_after=new_balance,
            sequence=seen_version + 1,
            transaction_type=transaction_type,
            description=description,
            created_by=actor,
            created_at=created_at,
        ))
        session.flush()

        return new_balance, True

    def _has_transaction_of_type(
        self, session: Session, account_id: uuid.UUID, transaction_type: TransactionType
    ) -> bool:
        statement = (
            select(CreditTransaction.id)
            .where(CreditTransaction.account_id == account_id)
            .where(CreditTransaction.transaction_type == transaction_type)
            .limit(1)
        )
        return session.exec(statement).first() is not None

    def _next_timestamp(self, previous: Optional[datetime]) -> datetime:
        # strictly increasing per account so history order matches commit order
        now = datetime.now(timezone.utc)
        if previous is not None and now <= _aware(previous):
            now = _aware(previous) + timedelta(microseconds=1)
        return now


balance_engine = BalanceEngine()
