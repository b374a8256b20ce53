from datetime import datetime
from typing import List, Optional
import uuid

from pydantic import BaseModel, ConfigDict, Field

from credit_gate.config import settings
from credit_gate.models.account import ApprovalStatus
from credit_gate.models.ledger import TransactionType


class UseCreditsRequest(BaseModel):
    amount: int = Field(default=settings.COST_PER_USE, description="Credits to spend")
    description: str = "Wizard usage"

class AdminCreditRequest(BaseModel):
    account_id: uuid.UUID
    amount: int
    description: Optional[str] = None

class BootstrapRequest(BaseModel):
    email: str
    full_name: Optional[str] = None
    secret_key: str

class BalanceResponse(BaseModel):
    balance: int

class FundsCheckResponse(BaseModel):
    sufficient: bool
    balance: int
    amount: int

class UseCreditsResponse(BaseModel):
    success: bool
    new_balance: int

class NewBalanceResponse(BaseModel):
    account_id: uuid.UUID
    new_balance: int

class TransactionRead(BaseModel):
    id: uuid.UUID
    account_id: uuid.UUID
    amount: int
    balance_after: int
    transaction_type: TransactionType
    description: Optional[str] = None
    created_by: Optional[uuid.UUID] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

class AccountBalance(BaseModel):
    account_id: uuid.UUID
    email: str
    full_name: Optional[str] = None
    approval_status: ApprovalStatus
    is_admin: bool
    is_disabled: bool
    balance: int

class AuditResponse(BaseModel):
    account_id: uuid.UUID
    consistent: bool
    stored_balance: int
    replayed_balance: int
    transaction_count: int
    mismatches: List[uuid.UUID]

class BootstrapResponse(BaseModel):
    success: bool
    message: str
    account_id: uuid.UUID
    balance: int
    seeded: bool
