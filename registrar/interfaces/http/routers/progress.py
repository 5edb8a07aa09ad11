from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ....application.use_cases.record_progress import RecordLessonProgress
from ....domain.entities import CurrentUser
from ....domain.errors import AppError
from ....infrastructure.db import get_db
from ....infrastructure.models import Student
from ....infrastructure.repositories import (
    CourseRepository, EnrollmentRepository, ProgressRepository, StudentRepository,
)
from ..authz import require_self_or_admin, require_student
from ..presenters import dump, lesson_progress_out, progress_out
from ..schemas import LessonProgressResp, ProgressUpdateReq

router = APIRouter(prefix="/progress", tags=["progress"])


def _student_of(user_id: int, db: Session) -> Student:
    student = StudentRepository(db).get_by_user_id(user_id)
    if not student:
        raise AppError("Student profile not found", 404, "STUDENT_NOT_FOUND")
    return student


@router.post("/lessons")
def record_lesson(payload: ProgressUpdateReq, user: CurrentUser = Depends(require_student),
                  db: Session = Depends(get_db)):
    student = _student_of(user.id, db)
    uc = RecordLessonProgress(
        courses=CourseRepository(db),
        enrollments=EnrollmentRepository(db),
        progress=ProgressRepository(db),
    )
    result = uc.execute(student.id, payload.lesson_id, payload.is_completed, payload.time_spent)
    return {
        "message": "Progress updated successfully",
        "progress": progress_out(result.progress),
        "lessonProgress": dump(LessonProgressResp.model_validate(result.lesson_progress)),
    }


@router.get("/courses/{course_id}")
def course_progress(course_id: int, user: CurrentUser = Depends(require_student), db: Session = Depends(get_db)):
    student = _student_of(user.id, db)
    progress = ProgressRepository(db).get_for(student.id, course_id)
    if not progress:
        raise AppError("No progress recorded for this course", 404, "PROGRESS_NOT_FOUND")
    return {
        "progress": {
            **progress_out(progress),
            "course": {"id": progress.course.id, "title": progress.course.title},
            "lessonDetails": lesson_progress_out(progress),
        }
    }


@router.get("/users/{user_id}")
def user_progress(user_id: int, _: CurrentUser = Depends(require_self_or_admin("user_id")),
                  db: Session = Depends(get_db)):
    student = StudentRepository(db).get_detail_by_user_id(user_id)
    if not student:
        raise AppError("Student profile not found", 404, "STUDENT_NOT_FOUND")
    return {
        "progress": [
            {**progress_out(p), "course": {"id": p.course.id, "title": p.course.title}}
            for p in student.progress
        ]
    }
