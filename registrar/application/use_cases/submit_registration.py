import structlog

from ...domain.entities import RegistrationStatus, Role, UserStatus
from ...domain.errors import AppError, DataAccessError, DataErrorKind
from ...infrastructure import notifications
from ...infrastructure.metrics import registrations_total
from ...infrastructure.models import Registration, Student, User
from ...infrastructure.repositories import (
    CourseRepository, RegistrationRepository, StudentRepository, UserRepository,
)
from ..dto import SubmissionResult

logger = structlog.get_logger(__name__)


class SubmitRegistration:
    """Public enrolment request for a course.

    Unknown emails get a new INACTIVE user without a password plus a student
    profile; known emails reuse their account. Everything is written in one
    transaction.
    """

    def __init__(self, users: UserRepository, students: StudentRepository,
                 courses: CourseRepository, registrations: RegistrationRepository):
        self.users = users
        self.students = students
        self.courses = courses
        self.registrations = registrations

    def _student_for(self, first_name: str, last_name: str, email: str, phone: str | None,
                     profile: dict) -> Student:
        user = self.users.get_by_email(email)
        if user is None:
            user = self.users.add(User(
                email=email.lower(),
                password_hash=None,
                first_name=first_name,
                last_name=last_name,
                phone=phone,
                role=Role.STUDENT.value,
                status=UserStatus.INACTIVE.value,
            ))

        student = self.students.get_by_user_id(user.id)
        if student is None:
            student = self.students.add(Student(user_id=user.id, **profile))
        return student

    def execute(self, *, first_name: str, last_name: str, email: str, phone: str | None,
                course_id: int, message: str | None, profile: dict) -> SubmissionResult:
        course = self.courses.get(course_id)
        if not course:
            raise AppError("Course not found", 404, "COURSE_NOT_FOUND")

        student = self._student_for(first_name, last_name, email, phone, profile)
        if self.registrations.find_open(student.id, course.id):
            raise AppError("A registration for this course already exists", 409, "REGISTRATION_EXISTS")

        registration = Registration(
            student_id=student.id,
            course_id=course.id,
            message=message,
            status=RegistrationStatus.PENDING.value,
        )
        try:
            self.registrations.add(registration)
            self.registrations.commit()
        except DataAccessError as e:
            # a concurrent submission won the open-registration index
            if e.kind is DataErrorKind.UNIQUE_VIOLATION:
                raise AppError("A registration for this course already exists", 409, "REGISTRATION_EXISTS") from e
            raise

        registration = self.registrations.get(registration.id)
        user = registration.student.user
        registrations_total.labels(action="submitted").inc()
        logger.info(
            "registration_submitted",
            registration_id=registration.id,
            student_id=student.id,
            course_id=course.id,
        )
        url = notifications.registration_link(user.first_name, user.last_name, user.email, user.phone,
                                              registration.course.title)
        return SubmissionResult(registration=registration, whatsapp_url=url)
