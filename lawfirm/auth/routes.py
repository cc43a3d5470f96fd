from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session
from datetime import timedelta, datetime
import logging

from lawfirm import config
from lawfirm.database import get_db
from lawfirm.models import User
from lawfirm.auth.schemas import (
    Token, UserResponse, ChangePasswordRequest, ForgotPasswordRequest,
    ResetPasswordRequest, MessageResponse
)
from lawfirm.auth.utils import (
    verify_password, get_password_hash, create_access_token, create_reset_token,
    read_reset_token, ACCESS_TOKEN_EXPIRE_MINUTES
)
from lawfirm.auth.dependencies import get_current_user
from lawfirm.services.email_service import get_email_sender

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])

FORGOT_PASSWORD_MESSAGE = "If an account exists for that email, a reset link has been sent."


@router.post("/login", response_model=Token)
def login_user(form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == form_data.username.strip().lower()).first()

    if not user or not verify_password(form_data.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Account is not active"
        )

    # Update last login
    user.last_login = datetime.utcnow()
    db.commit()

    access_token_expires = timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    access_token = create_access_token(
        data={"sub": user.email, "role": user.role.value},
        expires_delta=access_token_expires
    )

    return {"access_token": access_token, "token_type": "bearer", "role": user.role}


@router.get("/me", response_model=UserResponse)
def get_current_user_info(current_user: User = Depends(get_current_user)):
    return current_user


@router.post("/change-password", response_model=MessageResponse)
def change_password(
    payload: ChangePasswordRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    if not verify_password(payload.current_password, current_user.password_hash):
        raise HTTPException(status_code=400, detail="Current password is incorrect")

    current_user.password_hash = get_password_hash(payload.new_password)
    db.commit()
    logger.info(f"User {current_user.id} changed their password")
    return {"message": "Password changed successfully"}


@router.post("/forgot-password", response_model=MessageResponse)
def forgot_password(
    payload: ForgotPasswordRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db)
):
    # Same answer either way so the endpoint cannot be used to probe for accounts
    user = db.query(User).filter(User.email == payload.email.strip().lower()).first()
    if user and user.is_active:
        token = create_reset_token(user.email, user.password_hash)
        link = f"{config.FRONTEND_URL}/reset-password?token={token}"
        background_tasks.add_task(
            get_email_sender().send,
            user.email,
            "Reset your password",
            f"<p>Use the link below to choose a new password. It expires in "
            f"{config.PASSWORD_RESET_EXPIRE_MINUTES} minutes.</p><p><a href='{link}'>Reset password</a></p>"
        )
    return {"message": FORGOT_PASSWORD_MESSAGE}


@router.post("/reset-password", response_model=MessageResponse)
def reset_password(payload: ResetPasswordRequest, db: Session = Depends(get_db)):
    invalid = HTTPException(status_code=400, detail="Invalid or expired reset token")
    claims = read_reset_token(payload.token)
    if not claims:
        raise invalid

    user = db.query(User).filter(User.email == claims["sub"]).first()
    if not user or claims.get("fp") != user.password_hash[-12:]:
        raise invalid

    user.password_hash = get_password_hash(payload.new_password)
    db.commit()
    logger.info(f"Password reset for user {user.id}")
    return {"message": "Password has been reset"}
