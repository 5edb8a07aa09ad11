import structlog

from ...domain.entities import UserStatus
from ...domain.errors import AppError
from ...infrastructure.metrics import login_attempts_total
from ...infrastructure.models import User
from ..dto import LoginResult

logger = structlog.get_logger(__name__)


class IUserRepository:
    def get(self, user_id: int) -> User | None: ...
    def get_by_email(self, email: str) -> User | None: ...
    def save(self, row: User) -> User: ...


class IPasswordHasher:
    def hash(self, plain: str) -> str: ...
    def verify(self, plain: str, hashed: str | None) -> bool: ...


class LoginUser:
    def __init__(self, repo: IUserRepository, hasher: IPasswordHasher, issue_token):
        self.repo = repo
        self.hasher = hasher
        self.issue_token = issue_token

    def execute(self, email: str, password: str) -> LoginResult:
        user = self.repo.get_by_email(email)
        if not user:
            logger.info("login_failed", email=email, reason="unknown_email")
            login_attempts_total.labels(outcome="unknown_email").inc()
            raise AppError("Invalid email or password", 401, "INVALID_CREDENTIALS")
        if user.status != UserStatus.ACTIVE.value:
            logger.info("login_failed", user_id=user.id, reason="inactive")
            login_attempts_total.labels(outcome="inactive").inc()
            raise AppError("Account is inactive. Please contact support.", 401, "ACCOUNT_INACTIVE")
        if not self.hasher.verify(password, user.password_hash):
            logger.info("login_failed", user_id=user.id, reason="bad_password")
            login_attempts_total.labels(outcome="bad_password").inc()
            raise AppError("Invalid email or password", 401, "INVALID_CREDENTIALS")

        token = self.issue_token(user.id, user.email, user.role)
        logger.info("login_succeeded", user_id=user.id, role=user.role)
        login_attempts_total.labels(outcome="success").inc()
        return LoginResult(token=token, user=user)


class ChangePassword:
    def __init__(self, repo: IUserRepository, hasher: IPasswordHasher):
        self.repo = repo
        self.hasher = hasher

    def execute(self, user_id: int, current_password: str, new_password: str) -> None:
        user = self.repo.get(user_id)
        if not user:
            raise AppError("User not found", 404, "USER_NOT_FOUND")
        if not self.hasher.verify(current_password, user.password_hash):
            raise AppError("Current password is incorrect", 400, "INVALID_PASSWORD")
        user.password_hash = self.hasher.hash(new_password)
        self.repo.save(user)
        logger.info("password_changed", user_id=user.id)
