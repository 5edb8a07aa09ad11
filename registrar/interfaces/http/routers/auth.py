import structlog
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from ....application.use_cases.authenticate_user import ChangePassword, LoginUser
from ....config import settings
from ....domain.entities import CurrentUser
from ....domain.errors import AppError
from ....infrastructure.db import get_db
from ....infrastructure.rate_limit import limiter
from ....infrastructure.repositories import UserRepository
from ....infrastructure.security import PasswordHasher, create_access_token
from ..authz import get_current_user
from ..presenters import profile_out, user_out
from ..schemas import LoginReq, PasswordChangeReq, ProfileUpdateReq, TokenResp

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=TokenResp)
@limiter.limit(settings.LOGIN_RATE_LIMIT)
def login(request: Request, payload: LoginReq, db: Session = Depends(get_db)):
    uc = LoginUser(repo=UserRepository(db), hasher=PasswordHasher(), issue_token=create_access_token)
    result = uc.execute(payload.email, payload.password)
    return TokenResp(token=result.token, user=user_out(result.user))


@router.get("/profile")
def get_profile(user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)):
    row = UserRepository(db).get_profile(user.id)
    if not row:
        raise AppError("User not found", 404, "USER_NOT_FOUND")
    return {"message": "Profile retrieved successfully", "user": profile_out(row)}


@router.put("/profile")
def update_profile(payload: ProfileUpdateReq, user: CurrentUser = Depends(get_current_user),
                   db: Session = Depends(get_db)):
    repo = UserRepository(db)
    row = repo.get(user.id)
    if not row:
        raise AppError("User not found", 404, "USER_NOT_FOUND")
    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(row, field, value)
    repo.save(row)
    return {"message": "Profile updated successfully", "user": user_out(row)}


@router.post("/change-password")
def change_password(payload: PasswordChangeReq, user: CurrentUser = Depends(get_current_user),
                    db: Session = Depends(get_db)):
    ChangePassword(repo=UserRepository(db), hasher=PasswordHasher()).execute(
        user.id, payload.current_password, payload.new_password
    )
    return {"message": "Password changed successfully"}


@router.post("/logout")
def logout(user: CurrentUser = Depends(get_current_user)):
    # tokens are stateless; the client discards its copy
    logger.info("logout", user_id=user.id)
    return {"message": "Logout successful"}


@router.get("/verify")
def verify(user: CurrentUser = Depends(get_current_user)):
    return {
        "message": "Token is valid",
        "user": {"id": user.id, "email": user.email, "role": user.role, "status": user.status},
    }


@router.post("/refresh")
def refresh(user: CurrentUser = Depends(get_current_user)):
    return {
        "message": "Token refreshed successfully",
        "token": create_access_token(user.id, user.email, user.role),
    }
