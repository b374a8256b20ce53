from typing import Optional
from datetime import datetime, timezone
from enum import Enum
import uuid

from sqlmodel import SQLModel, Field
from sqlalchemy import Column, BigInteger, CheckConstraint, Index, UniqueConstraint


class TransactionType(str, Enum):
    USAGE_DEBIT = "usage_debit"
    ADMIN_CREDIT = "admin_credit"
    ADMIN_DEBIT = "admin_debit"
    SEED_CREDIT = "seed_credit"


CREDIT_TYPES = (TransactionType.ADMIN_CREDIT, TransactionType.SEED_CREDIT)
DEBIT_TYPES = (TransactionType.USAGE_DEBIT, TransactionType.ADMIN_DEBIT)


class LedgerBalance(SQLModel, table=True):
    """
    Cached current balance of one account. Written only by the BalanceEngine;
    `version` counts committed mutations and guards concurrent writers.
    """
    __tablename__ = "ledger_balance" #type: ignore
    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_ledger_balance_non_negative"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    account_id: uuid.UUID = Field(foreign_key="account.id", unique=True, index=True)
    balance: int = Field(default=0, sa_column=Column(BigInteger, nullable=False, default=0))
    version: int = Field(default=0)
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class CreditTransaction(SQLModel, table=True):
    """
    Append-only record explaining one balance change. Never updated or deleted.
    """
    __tablename__ = "credit_transaction" #type: ignore
    __table_args__ = (
        CheckConstraint("amount <> 0", name="ck_credit_transaction_non_zero"),
        CheckConstraint("balance_after >= 0", name="ck_credit_transaction_balance_after"),
        UniqueConstraint("account_id", "sequence", name="uq_credit_transaction_sequence"),
        Index("ix_credit_transaction_account_created", "account_id", "created_at"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    account_id: uuid.UUID = Field(foreign_key="account.id")
    amount: int = Field(sa_column=Column(BigInteger, nullable=False))
    balance_after: int = Field(sa_column=Column(BigInteger, nullable=False))
    sequence: int
    transaction_type: TransactionType
    description: Optional[str] = Field(default=None)
    created_by: Optional[uuid.UUID] = Field(default=None)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
