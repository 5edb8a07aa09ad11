"""Bearer-token authentication and role gates as FastAPI dependencies.

`get_current_user` walks the per-request checks in order: header present,
token verifies, user still exists, user is active. The first failing check
raises an `AppError` with status 401. `get_optional_user` runs the same
checks but yields None instead of failing.

Role gates are split into pure predicates (`has_role`, `is_self_or_admin`)
and dependency wrappers that turn a failed predicate into 401/403.
"""
from typing import Iterable

import structlog
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from ...domain.entities import CurrentUser, Role, UserStatus
from ...domain.errors import AppError, TokenError, TokenExpiredError
from ...infrastructure.db import get_db
from ...infrastructure.repositories import UserRepository
from ...infrastructure.security import decode_token

logger = structlog.get_logger(__name__)

bearer = HTTPBearer(auto_error=False)


def _resolve(token: str, db: Session) -> CurrentUser:
    try:
        payload = decode_token(token)
    except TokenExpiredError:
        raise AppError("Your session has expired. Please log in again.", 401, "TOKEN_EXPIRED")
    except TokenError:
        raise AppError("Authentication token is invalid", 401, "INVALID_TOKEN")

    user = UserRepository(db).get(payload.user_id)
    if not user:
        raise AppError("User not found", 401, "INVALID_TOKEN")
    if user.status != UserStatus.ACTIVE.value:
        raise AppError("Your account has been deactivated", 401, "ACCOUNT_INACTIVE")
    return CurrentUser(id=user.id, email=user.email, role=user.role, status=user.status)


def get_current_user(
    request: Request,
    creds: HTTPAuthorizationCredentials | None = Depends(bearer),
    db: Session = Depends(get_db),
) -> CurrentUser:
    if creds is None or not creds.credentials:
        raise AppError("Please provide a valid authentication token", 401, "AUTH_REQUIRED")
    user = _resolve(creds.credentials, db)
    request.state.user = user
    return user


def get_optional_user(
    request: Request,
    creds: HTTPAuthorizationCredentials | None = Depends(bearer),
    db: Session = Depends(get_db),
) -> CurrentUser | None:
    if creds is None or not creds.credentials:
        return None
    try:
        user = _resolve(creds.credentials, db)
    except AppError as e:
        logger.info("optional_auth_ignored", code=e.code)
        return None
    request.state.user = user
    return user


def has_role(user: CurrentUser | None, roles: Iterable[str]) -> bool:
    return user is not None and user.role in set(roles)


def is_self_or_admin(user: CurrentUser | None, owner_user_id: int) -> bool:
    return user is not None and (user.is_admin or user.id == owner_user_id)


def require_roles(*roles: Role):
    allowed = [r.value for r in roles]

    def gate(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if not has_role(user, allowed):
            raise AppError(
                f"This action requires one of the following roles: {', '.join(allowed)}",
                403,
                "INSUFFICIENT_PERMISSIONS",
            )
        return user

    return gate


require_admin = require_roles(Role.ADMIN)
require_student = require_roles(Role.STUDENT)
require_student_or_admin = require_roles(Role.STUDENT, Role.ADMIN)


def ensure_self_or_admin(user: CurrentUser, owner_user_id: int) -> None:
    if not is_self_or_admin(user, owner_user_id):
        raise AppError("You can only access your own data", 403, "ACCESS_DENIED")


def require_self_or_admin(param: str = "user_id"):
    """Gate for routes whose path parameter `param` is the owning user's id."""
    def gate(request: Request, user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        raw = request.path_params.get(param)
        try:
            owner_id = int(raw)
        except (TypeError, ValueError):
            raise AppError("You can only access your own data", 403, "ACCESS_DENIED")
        ensure_self_or_admin(user, owner_id)
        return user

    return gate
