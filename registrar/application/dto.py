from dataclasses import dataclass

from ..infrastructure.models import (
    Enrollment, LessonProgress, Registration, StudentProgress, User,
)


@dataclass
class LoginResult:
    token: str
    user: User


@dataclass
class SubmissionResult:
    registration: Registration
    whatsapp_url: str


@dataclass
class ReviewResult:
    registration: Registration
    whatsapp_url: str
    enrollment: Enrollment | None = None
    progress: StudentProgress | None = None
    # set only when approval had to give the account its first password
    temporary_password: str | None = None


@dataclass
class ProgressResult:
    progress: StudentProgress
    lesson_progress: LessonProgress
