"""
Password hashing and the bearer tokens handed to professors at login.

A token carries the professor id as ``sub`` and the email it was issued for.
Reading one back never raises: a bad signature, an expired token or a token
without a subject all come back as ``None``.
"""

import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from ..schemas.auth import TokenData


logger = logging.getLogger(__name__)

SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-this-secret")
ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))

# pbkdf2_sha256 needs no compiled backend
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        # stored value is not a hash passlib recognises
        logger.warning("Stored password hash has an unknown format")
        return False


def create_professor_token(professor_id: str, email: str, expires_delta: Optional[timedelta] = None) -> str:
    issued_at = datetime.now(timezone.utc)
    claims = {
        "sub": professor_id,
        "email": email,
        "iat": issued_at,
        "exp": issued_at + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)),
    }
    return jwt.encode(claims, SECRET_KEY, algorithm=ALGORITHM)


def read_professor_token(token: str) -> Optional[TokenData]:
    try:
        claims = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except ExpiredSignatureError:
        logger.info("Rejected an expired token")
        return None
    except JWTError as exc:
        logger.warning("Rejected an invalid token: %s", exc)
        return None
    if not claims.get("sub"):
        return None
    return TokenData(professor_id=claims["sub"], email=claims.get("email"))
