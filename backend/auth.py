from dataclasses import dataclass
from passlib.context import CryptContext
from datetime import datetime, timedelta
from jose import jwt
from fastapi import HTTPException, Depends
from jose import JWTError
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from config import settings
from logging_config import logger, set_user_id
from models import Role


# Password hashing
pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
)


def hash_password(password: str) -> str:
    # bcrypt only looks at the first 72 bytes
    if len(password.encode("utf-8")) > 72:
        password = password.encode("utf-8")[:72].decode("utf-8", errors="ignore")
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    if len(plain_password.encode("utf-8")) > 72:
        plain_password = plain_password.encode("utf-8")[:72].decode("utf-8", errors="ignore")
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(data: dict, expires_delta: timedelta | None = None):
    to_encode = data.copy()
    expire = datetime.utcnow() + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


@dataclass(frozen=True)
class Actor:
    """Identity and role asserted by a verified bearer token."""

    email: str
    role: Role


security = HTTPBearer()


async def get_current_actor(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> Actor:
    token = credentials.credentials
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        logger.log_auth_event("verify", success=False, reason="invalid or expired token")
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    email: str | None = payload.get("sub")
    if email is None:
        raise HTTPException(status_code=401, detail="Invalid token")

    try:
        role = Role(payload.get("role"))
    except ValueError:
        logger.log_auth_event("verify", success=False, user_email=email, reason="missing role claim")
        raise HTTPException(status_code=401, detail="Token carries no valid role")

    # must stay async so the user id is set in the request's own context
    set_user_id(email)
    return Actor(email=email, role=role)
