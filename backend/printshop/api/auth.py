# backend/printshop/api/auth.py
#
# Token verification for REST and websocket callers. Token issuance (login,
# refresh) lives in the account service; ``create_access_token`` is kept for
# tooling and tests.

from datetime import datetime, timedelta
from typing import Optional

from fastapi.security import OAuth2PasswordBearer
from jose import jwt

from ..core.config import settings

SECRET_KEY = settings.SECRET_KEY
ALGORITHM = settings.ALGORITHM
ACCESS_TOKEN_EXPIRE_MINUTES = settings.ACCESS_TOKEN_EXPIRE_MINUTES

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str, leeway: int = 0) -> dict:
    """Decode and verify ``token``; raises ``JWTError`` (or ``ExpiredSignatureError``)."""
    return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM], options={"leeway": leeway})
