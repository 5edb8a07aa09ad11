import structlog

from ...domain.entities import (
    EnrollmentStatus, PaymentStatus, RegistrationAction, RegistrationStatus, UserStatus,
)
from ...domain.errors import AppError
from ...infrastructure import notifications
from ...infrastructure.metrics import registrations_total
from ...infrastructure.models import Enrollment, StudentProgress, utcnow
from ...infrastructure.repositories import (
    CourseRepository, EnrollmentRepository, ProgressRepository, RegistrationRepository,
)
from ..dto import ReviewResult

logger = structlog.get_logger(__name__)


class ReviewRegistration:
    """Approve or reject a pending registration.

    Approval activates the account, gives it a temporary password if it has
    none, and opens an enrollment plus a progress record. All of it commits
    together.
    """

    def __init__(self, registrations: RegistrationRepository, courses: CourseRepository,
                 enrollments: EnrollmentRepository, progress: ProgressRepository,
                 hasher, generate_password):
        self.registrations = registrations
        self.courses = courses
        self.enrollments = enrollments
        self.progress = progress
        self.hasher = hasher
        self.generate_password = generate_password

    def execute(self, registration_id: int, action: RegistrationAction, message: str | None,
                reviewer_id: int) -> ReviewResult:
        registration = self.registrations.get(registration_id)
        if not registration:
            raise AppError("Registration not found", 404, "REGISTRATION_NOT_FOUND")
        if registration.status != RegistrationStatus.PENDING.value:
            raise AppError("Registration has already been processed", 400, "REGISTRATION_PROCESSED")

        user = registration.student.user
        course = registration.course
        registration.reviewed_by = reviewer_id
        registration.reviewed_at = utcnow()

        if action is RegistrationAction.REJECT:
            registration.status = RegistrationStatus.REJECTED.value
            registration.rejection_reason = message
            self.registrations.commit()
            registrations_total.labels(action="rejected").inc()
            logger.info("registration_reviewed", registration_id=registration.id, action=action.value,
                        reviewer_id=reviewer_id)
            return ReviewResult(
                registration=registration,
                whatsapp_url=notifications.rejection_link(user.first_name, course.title, message),
            )

        registration.status = RegistrationStatus.APPROVED.value
        if user.status == UserStatus.INACTIVE.value:
            user.status = UserStatus.ACTIVE.value

        temporary_password = None
        if not user.password_hash:
            temporary_password = self.generate_password()
            user.password_hash = self.hasher.hash(temporary_password)

        enrollment = self.enrollments.get_for(registration.student_id, course.id)
        if enrollment is None:
            enrollment = self.enrollments.add(Enrollment(
                student_id=registration.student_id,
                course_id=course.id,
                status=EnrollmentStatus.ACTIVE.value,
                payment_status=PaymentStatus.PENDING.value,
            ))

        progress = self.progress.get_for(registration.student_id, course.id)
        if progress is None:
            progress = self.progress.add(StudentProgress(
                student_id=registration.student_id,
                course_id=course.id,
                total_lessons=self.courses.count_lessons(course.id),
            ))

        self.registrations.commit()
        registrations_total.labels(action="approved").inc()
        logger.info("registration_reviewed", registration_id=registration.id, action=action.value,
                    reviewer_id=reviewer_id)
        return ReviewResult(
            registration=registration,
            whatsapp_url=notifications.approval_link(user.first_name, course.title),
            enrollment=enrollment,
            progress=progress,
            temporary_password=temporary_password,
        )
