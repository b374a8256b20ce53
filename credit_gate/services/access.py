import logging
import uuid
from enum import Enum
from typing import Optional

from sqlmodel import Session

from credit_gate.errors import Forbidden, Unauthorized
from credit_gate.models.account import Account

logger = logging.getLogger(__name__)


class Decision(str, Enum):
    ALLOW = "allow"
    FORBIDDEN = "forbidden"
    UNAUTHORIZED = "unauthorized"


class AccessGate:
    """
    Decides whether a caller may run a ledger operation.

    Account state is loaded from the session on every call, never cached,
    so an admin who was disabled a second ago is already refused.
    """

    def load_caller(self, session: Session, caller_id: Optional[uuid.UUID]) -> Optional[Account]:
        if caller_id is None:
            return None
        return session.get(Account, caller_id, populate_existing=True)

    def can_use_credits(self, caller: Optional[Account], account_id: uuid.UUID) -> Decision:
        if caller is None:
            return Decision.UNAUTHORIZED
        if caller.id != account_id:
            return Decision.FORBIDDEN
        if not caller.is_approved or caller.is_disabled:
            return Decision.FORBIDDEN
        return Decision.ALLOW

    def can_administer(self, caller: Optional[Account]) -> Decision:
        # the target account's state never blocks an admin
        if caller is None:
            return Decision.UNAUTHORIZED
        if not caller.is_admin or caller.is_disabled:
            return Decision.FORBIDDEN
        return Decision.ALLOW

    def can_read(self, caller: Optional[Account], account_id: uuid.UUID) -> Decision:
        if caller is None:
            return Decision.UNAUTHORIZED
        if caller.id == account_id:
            # disabled owners may still look at their own ledger
            return Decision.ALLOW if caller.is_approved else Decision.FORBIDDEN
        return self.can_administer(caller)

    def enforce(self, decision: Decision, operation: str = "ledger operation") -> None:
        if decision == Decision.ALLOW:
            return
        if decision == Decision.UNAUTHORIZED:
            raise Unauthorized()

        logger.warning(f"Forbidden: {operation}")
        raise Forbidden(f"Not allowed to perform {operation}")

    def require_self_service(self, session: Session, caller_id: Optional[uuid.UUID]) -> Account:
        """
        Loads the caller and checks they may spend their own credits.
        """
        caller = self.load_caller(session, caller_id)
        if caller is None:
            raise Unauthorized()
        self.enforce(self.can_use_credits(caller, caller.id), "self-service credit use")
        return caller

    def require_owner_reader(self, session: Session, caller_id: Optional[uuid.UUID]) -> Account:
        """
        Loads the caller and checks they may read their own balance and history.
        """
        caller = self.load_caller(session, caller_id)
        if caller is None:
            raise Unauthorized()
        self.enforce(self.can_read(caller, caller.id), "own ledger read")
        return caller

    def require_admin(self, session: Session, caller_id: Optional[uuid.UUID]) -> Account:
        caller = self.load_caller(session, caller_id)
        self.enforce(self.can_administer(caller), "administrative credit operation")
        return caller #type: ignore

    def require_reader(self, session: Session, caller_id: Optional[uuid.UUID], account_id: uuid.UUID) -> Account:
        caller = self.load_caller(session, caller_id)
        self.enforce(self.can_read(caller, account_id), "transaction history read")
        return caller #type: ignore


access_gate = AccessGate()
