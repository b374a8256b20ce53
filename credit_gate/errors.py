from typing import Any, Dict


class LedgerError(Exception):
    """
    Base class for every error the ledger reports to its caller.
    `status_code` and `code` are what the HTTP layer renders.
    """
    status_code: int = 400
    code: str = "ledger_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"success": False, "error": self.code, "message": self.message}


class InvalidAmount(LedgerError):
    status_code = 400
    code = "invalid_amount"

    def __init__(self, amount: int):
        super().__init__(f"Amount must be a positive integer, got {amount}")
        self.amount = amount


class InsufficientBalance(LedgerError):
    status_code = 402
    code = "insufficient_balance"

    def __init__(self, balance: int, requested: int):
        super().__init__(f"Insufficient credits: balance {balance}, requested {requested}")
        self.balance = balance
        self.requested = requested

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({"balance": self.balance, "requested": self.requested})
        return data


class Unauthorized(LedgerError):
    status_code = 401
    code = "unauthorized"

    def __init__(self, message: str = "Not authenticated. Provide a valid Bearer token."):
        super().__init__(message)


class Forbidden(LedgerError):
    status_code = 403
    code = "forbidden"

    def __init__(self, message: str = "Not allowed to perform this operation"):
        super().__init__(message)


class AccountNotFound(LedgerError):
    status_code = 404
    code = "account_not_found"

    def __init__(self, account_id):
        super().__init__(f"Account {account_id} not found")
        self.account_id = account_id


class TransientFailure(LedgerError):
    status_code = 503
    code = "transient_failure"

    def __init__(self, message: str = "Ledger is busy, please retry"):
        super().__init__(message)
