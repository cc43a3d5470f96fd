from datetime import datetime, timedelta
from typing import Optional
import secrets

from jose import JWTError, jwt
from passlib.context import CryptContext

from lawfirm import config
from lawfirm.auth.schemas import TokenData
from lawfirm.models import UserRole

SECRET_KEY = config.SECRET_KEY
ALGORITHM = config.ALGORITHM
ACCESS_TOKEN_EXPIRE_MINUTES = config.ACCESS_TOKEN_EXPIRE_MINUTES

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

RESET_SCOPE = "password_reset"


def verify_password(plain_password: str, hashed_password: str) -> bool:
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def generate_temporary_password() -> str:
    # Same shape the firm has always mailed out: Law + 8 hex chars + !
    return f"Law{secrets.token_hex(4)}!"


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def verify_token(token: str, credentials_exception) -> TokenData:
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        raise credentials_exception
    email = payload.get("sub")
    if email is None or payload.get("scope") == RESET_SCOPE:
        raise credentials_exception
    role = payload.get("role")
    try:
        return TokenData(email=email, role=UserRole(role) if role else None)
    except ValueError:
        raise credentials_exception


def create_reset_token(email: str, password_hash: str) -> str:
    # Binding the token to the current hash makes it single use
    return create_access_token(
        data={"sub": email, "scope": RESET_SCOPE, "fp": password_hash[-12:]},
        expires_delta=timedelta(minutes=config.PASSWORD_RESET_EXPIRE_MINUTES),
    )


def read_reset_token(token: str) -> Optional[dict]:
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None
    if payload.get("scope") != RESET_SCOPE or not payload.get("sub"):
        return None
    return payload
