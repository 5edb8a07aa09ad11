import structlog
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ....domain.entities import CurrentUser, Role, UserStatus
from ....domain.errors import AppError, DataAccessError, DataErrorKind
from ....infrastructure.db import get_db
from ....infrastructure.models import AdminUser, User
from ....infrastructure.repositories import UserRepository
from ....infrastructure.security import PasswordHasher
from ..authz import require_admin
from ..presenters import user_out
from ..schemas import AdminUserCreateReq

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/users", status_code=status.HTTP_201_CREATED)
def create_admin_user(payload: AdminUserCreateReq, admin: CurrentUser = Depends(require_admin),
                      db: Session = Depends(get_db)):
    repo = UserRepository(db)
    if repo.get_by_email(payload.email):
        raise AppError("A user with this email already exists", 409, "USER_EXISTS")

    user = User(
        email=payload.email.lower(),
        password_hash=PasswordHasher().hash(payload.password),
        first_name=payload.first_name,
        last_name=payload.last_name,
        phone=payload.phone,
        role=Role.ADMIN.value,
        status=UserStatus.ACTIVE.value,
    )
    try:
        repo.add(user)
        repo.add(AdminUser(user_id=user.id, department=payload.department, permissions=payload.permissions))
        repo.commit()
    except DataAccessError as e:
        # another request registered the email since the lookup
        if e.kind is DataErrorKind.UNIQUE_VIOLATION:
            raise AppError("A user with this email already exists", 409, "USER_EXISTS") from e
        raise
    logger.info("admin_user_created", user_id=user.id, created_by=admin.id)
    return {"message": "Admin user created successfully", "user": user_out(user)}
