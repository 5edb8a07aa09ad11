from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ....domain.entities import CurrentUser, EnrollmentStatus
from ....domain.errors import AppError
from ....infrastructure.db import get_db
from ....infrastructure.repositories import StudentRepository
from ..authz import ensure_self_or_admin, get_current_user, require_admin, require_student_or_admin
from ..presenters import (
    course_brief, course_stats, enrollment_out, lesson_progress_out, pagination, progress_for,
    progress_out, recent_activity, student_profile_out,
)
from ..schemas import StudentProfileUpdateReq, StudentSearchQuery
from ..validation import query_model

router = APIRouter(prefix="/students", tags=["students"])


# static paths before /{student_id}

@router.get("/dashboard")
def dashboard(user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)):
    student = StudentRepository(db).get_detail_by_user_id(user.id)
    if not student:
        raise AppError("Student profile not found", 404, "STUDENT_NOT_FOUND")

    enrollments = student.enrollments
    total_lessons = sum(p.total_lessons for p in student.progress)
    completed_lessons = sum(p.completed_lessons for p in student.progress)
    overall = completed_lessons / total_lessons * 100 if total_lessons else 0

    return {
        "student": {
            "id": student.id,
            "name": student.user.full_name,
            "email": student.user.email,
            "phone": student.user.phone,
            "joinedAt": student.created_at,
        },
        "statistics": {
            "totalCourses": len(enrollments),
            "activeCourses": sum(1 for e in enrollments if e.status == EnrollmentStatus.ACTIVE.value),
            "completedCourses": sum(1 for e in enrollments if e.status == EnrollmentStatus.COMPLETED.value),
            "totalLessons": total_lessons,
            "completedLessons": completed_lessons,
            "overallProgress": round(overall),
        },
        "enrollments": [
            {
                **enrollment_out(e),
                "course": {
                    "id": e.course.id,
                    "title": e.course.title,
                    "category": e.course.category,
                    "level": e.course.level,
                    "totalModules": len(e.course.modules),
                    "totalLessons": e.course.total_lessons,
                },
                "progress": progress_out(progress_for(student, e.course_id)),
            }
            for e in enrollments
        ],
        "recentActivity": [
            {
                "courseId": p.course.id,
                "courseTitle": p.course.title,
                "lastAccessed": p.last_accessed_at,
                "progressPercent": round(p.progress_percent),
                "completedLessons": p.completed_lessons,
                "totalLessons": p.total_lessons,
            }
            for p in recent_activity(student)
        ],
        "registrations": [
            {"id": r.id, "status": r.status, "createdAt": r.created_at, "course": course_brief(r.course)}
            for r in student.registrations
        ],
    }


@router.get("", dependencies=[Depends(require_admin)])
def list_students(query: StudentSearchQuery = Depends(query_model(StudentSearchQuery)),
                  db: Session = Depends(get_db)):
    rows, total = StudentRepository(db).list(
        page=query.page,
        limit=query.limit,
        sort_by=query.sort_by,
        sort_order=query.sort_order,
        q=query.q,
        status=query.status,
    )

    def summary(student):
        progress = student.progress
        touched = recent_activity(student, limit=1)
        return {
            "id": student.id,
            "name": student.user.full_name,
            "email": student.user.email,
            "phone": student.user.phone,
            "status": student.user.status,
            "joinedAt": student.created_at,
            "statistics": {
                "totalEnrollments": len(student.enrollments),
                "activeEnrollments": sum(1 for e in student.enrollments if e.status == EnrollmentStatus.ACTIVE.value),
                "totalProgress": len(progress),
                "averageProgress": round(sum(p.progress_percent for p in progress) / len(progress)) if progress else 0,
            },
            "lastActivity": touched[0].last_accessed_at if touched else None,
        }

    return {"students": [summary(s) for s in rows], "pagination": pagination(query.page, query.limit, total)}


@router.put("/profile")
def update_student_profile(payload: StudentProfileUpdateReq, user: CurrentUser = Depends(get_current_user),
                           db: Session = Depends(get_db)):
    repo = StudentRepository(db)
    student = repo.get_by_user_id(user.id)
    if not student:
        raise AppError("Student profile not found", 404, "STUDENT_NOT_FOUND")
    for field, value in payload.student_fields().items():
        setattr(student, field, value)
    repo.save(student)
    return {"message": "Profile updated successfully", "student": student_profile_out(student)}


@router.get("/{student_id}")
def get_student(student_id: int, user: CurrentUser = Depends(require_student_or_admin),
                db: Session = Depends(get_db)):
    student = StudentRepository(db).get_detail(student_id)
    if not student:
        raise AppError("Student not found", 404, "STUDENT_NOT_FOUND")
    ensure_self_or_admin(user, student.user_id)

    profile = student_profile_out(student)
    profile["status"] = student.user.status
    profile["joinedAt"] = student.created_at
    return {
        "student": profile,
        "enrollments": [
            {
                **enrollment_out(e),
                "course": course_stats(e.course),
                "progress": progress_out(progress_for(student, e.course_id)),
            }
            for e in student.enrollments
        ],
        "courseProgress": [
            {
                **progress_out(p),
                "progressPercent": round(p.progress_percent),
                "course": {"id": p.course.id, "title": p.course.title},
                "lessonDetails": lesson_progress_out(p),
            }
            for p in student.progress
        ],
        "registrations": [
            {
                "id": r.id,
                "status": r.status,
                "createdAt": r.created_at,
                "reviewedAt": r.reviewed_at,
                "course": course_brief(r.course),
            }
            for r in student.registrations
        ],
    }
