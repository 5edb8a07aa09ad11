import structlog

from ...domain.entities import EnrollmentStatus
from ...domain.errors import AppError
from ...infrastructure.models import LessonProgress, StudentProgress, utcnow
from ...infrastructure.repositories import (
    CourseRepository, EnrollmentRepository, ProgressRepository,
)
from ..dto import ProgressResult

logger = structlog.get_logger(__name__)


class RecordLessonProgress:
    """Upsert one lesson's progress and recompute the course totals.

    Recording the same lesson twice is idempotent for completion and
    accumulates time spent. Reaching 100% marks the enrollment COMPLETED.
    """

    def __init__(self, courses: CourseRepository, enrollments: EnrollmentRepository,
                 progress: ProgressRepository):
        self.courses = courses
        self.enrollments = enrollments
        self.progress = progress

    def execute(self, student_id: int, lesson_id: int, is_completed: bool, time_spent: int) -> ProgressResult:
        lesson = self.courses.get_lesson(lesson_id)
        if not lesson:
            raise AppError("Lesson not found", 404, "LESSON_NOT_FOUND")
        course_id = lesson.module.course_id

        enrollment = self.enrollments.get_for(student_id, course_id)
        if not enrollment or enrollment.status not in (EnrollmentStatus.ACTIVE.value, EnrollmentStatus.COMPLETED.value):
            raise AppError("You are not enrolled in this course", 403, "NOT_ENROLLED")

        progress = self.progress.get_for(student_id, course_id)
        if progress is None:
            progress = self.progress.add(StudentProgress(
                student_id=student_id,
                course_id=course_id,
                total_lessons=self.courses.count_lessons(course_id),
            ))

        now = utcnow()
        entry = self.progress.get_lesson_progress(progress.id, lesson.id)
        if entry is None:
            entry = self.progress.add(LessonProgress(progress_id=progress.id, lesson_id=lesson.id,
                                                     is_completed=False, time_spent=0))
        if is_completed and not entry.is_completed:
            entry.is_completed = True
            entry.completed_at = now
        entry.time_spent += time_spent
        self.progress.add(entry)

        total = self.courses.count_lessons(course_id)
        completed = self.progress.count_completed(progress.id)
        progress.total_lessons = total
        progress.completed_lessons = completed
        progress.progress_percent = round(completed / total * 100, 2) if total else 0.0
        progress.total_time_spent = (progress.total_time_spent or 0) + time_spent
        progress.last_accessed_at = now

        if total and completed >= total and enrollment.status == EnrollmentStatus.ACTIVE.value:
            enrollment.status = EnrollmentStatus.COMPLETED.value
            enrollment.completed_at = now
            logger.info("course_completed", student_id=student_id, course_id=course_id)

        self.progress.commit()
        logger.info("lesson_progress_recorded", student_id=student_id, lesson_id=lesson.id,
                    completed=entry.is_completed, percent=progress.progress_percent)
        return ProgressResult(progress=progress, lesson_progress=entry)
