from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from lawfirm.actor import Actor
from lawfirm.database import get_db
from lawfirm.models import User, UserRole
from lawfirm.auth.utils import verify_token

bearer_scheme = HTTPBearer()

def user_from_token(db: Session, token: str) -> Optional[User]:
    """Resolve a raw token to an active user, or None. Used where no header is available."""
    try:
        token_data = verify_token(token, ValueError("invalid token"))
    except ValueError:
        return None
    user = db.query(User).filter(User.email == token_data.email).first()
    if user is None or not user.is_active:
        return None
    return user

def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    db: Session = Depends(get_db)
):
    token = credentials.credentials
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    token_data = verify_token(token, credentials_exception)
    user = db.query(User).filter(User.email == token_data.email).first()
    if user is None:
        raise credentials_exception
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is not active"
        )
    return user

def get_actor(current_user: User = Depends(get_current_user)) -> Actor:
    return Actor(user_id=current_user.id, role=current_user.role, email=current_user.email)

def require_role(allowed_roles: list[UserRole]):
    def role_checker(actor: Actor = Depends(get_actor)):
        if actor.role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions"
            )
        return actor
    return role_checker


# Convenience wrappers
def require_admin():
    return require_role([UserRole.ADMIN])


def require_lawyer():
    return require_role([UserRole.LAWYER])


def require_lawyer_or_admin():
    return require_role([UserRole.LAWYER, UserRole.ADMIN])


def require_client():
    return require_role([UserRole.CLIENT])
