"""Common API dependencies: the authenticated account."""

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlmodel import Session

from storda.database import get_session
from storda.errors import AuthenticationError
from storda.models.account import Account
from storda.utils.security import decode_token

# Missing credentials go through the registry error handler like any other 401
bearer_scheme = HTTPBearer(auto_error=False)


def get_current_account(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    session: Session = Depends(get_session),
) -> Account:
    """Resolve the bearer token to an Account, or raise AuthenticationError."""
    if credentials is None:
        raise AuthenticationError("Sign in to continue")

    try:
        payload = decode_token(credentials.credentials)
    except jwt.PyJWTError:
        raise AuthenticationError("Session expired, sign in again")

    account_id = payload.get("sub")
    if payload.get("type") != "access" or not account_id:
        raise AuthenticationError("Invalid token")

    account = session.get(Account, account_id)
    if not account:
        raise AuthenticationError("Account no longer exists")
    return account
