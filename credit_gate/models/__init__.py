from .account import Account, ApprovalStatus

from .ledger import LedgerBalance, CreditTransaction, TransactionType

__all__ = ["Account", "ApprovalStatus", "LedgerBalance", "CreditTransaction", "TransactionType"]
