from datetime import datetime, timedelta, timezone
from typing import Any, Union, Optional
from jose import jwt, JWTError
import uuid

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from credit_gate.config import settings

security_scheme = HTTPBearer(auto_error=False)


def create_access_token(subject: Union[str, Any], expires_delta: Union[timedelta, None] = None) -> str:
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode = {"exp": expire, "sub": str(subject)}
    encoded_jwt = jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return encoded_jwt

def get_account_id_from_jwt(token: str) -> Optional[uuid.UUID]:
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        account_id: str | None = payload.get("sub")
        if account_id is None:
            return None
        return uuid.UUID(account_id)
    except (JWTError, ValueError):
        return None


def get_caller_id(
    auth_creds: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
) -> Optional[uuid.UUID]:
    """
    Identifies the caller from the Bearer token.
    Returns None for anonymous requests; the AccessGate turns that into 401.
    """
    if not auth_creds:
        return None
    return get_account_id_from_jwt(auth_creds.credentials)
