import uuid
from typing import List, Optional, Sequence

from sqlmodel import Session, select, desc

from credit_gate.config import settings
from credit_gate.errors import InvalidAmount
from credit_gate.models.ledger import CreditTransaction


class HistoryService:
    def recent(
        self,
        session: Session,
        account_id: uuid.UUID,
        limit: Optional[int] = None,
    ) -> List[CreditTransaction]:
        """
        Most recent transactions first, never more than HISTORY_LIMIT.
        Ties on created_at fall back to id so repeated reads agree.
        """
        if limit is None:
            limit = settings.HISTORY_LIMIT
        if limit < 1:
            raise InvalidAmount(limit)
        limit = min(limit, settings.HISTORY_LIMIT)

        statement = (
            select(CreditTransaction)
            .where(CreditTransaction.account_id == account_id)
            .order_by(desc(CreditTransaction.created_at), desc(CreditTransaction.id))
            .limit(limit)
        )
        transactions: Sequence[CreditTransaction] = session.exec(statement).all()

        return list(transactions)


history_service = HistoryService()
