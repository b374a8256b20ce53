from datetime import datetime, timezone
from enum import Enum
import uuid

from sqlmodel import SQLModel, Field


class ApprovalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Account(SQLModel, table=True):
    """
    Identity and approval state of a user. The ledger only reads this table
    to authorize operations; balances live in `ledger_balance`.
    """
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    email: str = Field(unique=True, index=True)
    full_name: str | None = Field(default=None)
    approval_status: ApprovalStatus = Field(default=ApprovalStatus.PENDING)
    is_admin: bool = Field(default=False)
    is_disabled: bool = Field(default=False)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_approved(self) -> bool:
        return self.approval_status == ApprovalStatus.APPROVED
