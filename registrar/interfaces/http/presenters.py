"""Shape ORM rows into the JSON bodies the API returns.

Password hashes never leave this module: users are always rendered through
`UserResp`, which has no such field.
"""
import math

from ...infrastructure.models import (
    Course, Enrollment, Registration, Student, StudentProgress, User,
)
from .schemas import (
    AdminUserResp, CourseResp, CourseSummaryResp, LessonProgressResp, PaginationResp,
    ProgressResp, StudentResp, UserResp,
)


def dump(model) -> dict:
    return model.model_dump(by_alias=True)


def pagination(page: int, limit: int, total: int) -> dict:
    return dump(PaginationResp(page=page, limit=limit, total=total, pages=math.ceil(total / limit)))


def user_out(user: User) -> dict:
    out = dump(UserResp.model_validate(user))
    out["student"] = dump(StudentResp.model_validate(user.student)) if user.student else None
    out["adminUser"] = dump(AdminUserResp.model_validate(user.admin_user)) if user.admin_user else None
    return out


def profile_out(user: User) -> dict:
    out = user_out(user)
    if user.student:
        out["student"]["enrollments"] = [
            {**enrollment_out(e), "course": dump(CourseSummaryResp.model_validate(e.course))}
            for e in user.student.enrollments
        ]
        out["student"]["progress"] = [
            {**progress_out(p), "course": dump(CourseSummaryResp.model_validate(p.course))}
            for p in user.student.progress
        ]
    return out


def course_brief(course: Course) -> dict:
    return {"id": course.id, "title": course.title, "price": course.price, "currency": course.currency}


def course_stats(course: Course) -> dict:
    return {
        "id": course.id,
        "title": course.title,
        "description": course.description,
        "category": course.category,
        "level": course.level,
        "duration": course.duration,
        "price": course.price,
        "currency": course.currency,
        "prerequisites": course.prerequisites,
        "totalModules": len(course.modules),
        "totalLessons": course.total_lessons,
    }


def course_out(course: Course) -> dict:
    return dump(CourseResp.model_validate(course))


def enrollment_out(enrollment: Enrollment) -> dict:
    return {
        "id": enrollment.id,
        "status": enrollment.status,
        "paymentStatus": enrollment.payment_status,
        "enrolledAt": enrollment.enrolled_at,
        "completedAt": enrollment.completed_at,
    }


def progress_out(progress: StudentProgress | None) -> dict | None:
    if progress is None:
        return None
    return dump(ProgressResp.model_validate(progress))


def lesson_progress_out(progress: StudentProgress) -> list[dict]:
    return [
        {
            **dump(LessonProgressResp.model_validate(lp)),
            "lessonTitle": lp.lesson.title,
            "moduleTitle": lp.lesson.module.title,
        }
        for lp in progress.lesson_progress
    ]


def progress_for(student: Student, course_id: int) -> StudentProgress | None:
    return next((p for p in student.progress if p.course_id == course_id), None)


def recent_activity(student: Student, limit: int = 5) -> list[StudentProgress]:
    touched = [p for p in student.progress if p.last_accessed_at]
    return sorted(touched, key=lambda p: p.last_accessed_at, reverse=True)[:limit]


def student_profile_out(student: Student) -> dict:
    user = student.user
    return {
        "id": student.id,
        "personalInfo": {
            "name": user.full_name,
            "email": user.email,
            "phone": user.phone,
            "dateOfBirth": student.date_of_birth,
            "gender": student.gender,
            "nationality": student.nationality,
        },
        "address": {
            "street": student.address,
            "city": student.city,
            "state": student.state,
            "postalCode": student.postal_code,
            "country": student.country,
        },
        "emergencyContact": {
            "name": student.emergency_contact_name,
            "phone": student.emergency_contact_phone,
            "email": student.emergency_contact_email,
        },
        "academic": {
            "previousEducation": student.previous_education,
            "workExperience": student.work_experience,
        },
    }


def registration_row(reg: Registration) -> dict:
    student = reg.student
    user = student.user
    location = ", ".join(part for part in (student.city, student.state) if part)
    return {
        "id": reg.id,
        "status": reg.status,
        "message": reg.message,
        "createdAt": reg.created_at,
        "reviewedAt": reg.reviewed_at,
        "rejectionReason": reg.rejection_reason,
        "student": {
            "id": student.id,
            "name": user.full_name,
            "email": user.email,
            "phone": user.phone,
            "address": location,
            "previousEducation": student.previous_education,
        },
        "course": {**course_brief(reg.course), "category": reg.course.category},
    }


def registration_detail(reg: Registration) -> dict:
    student = reg.student
    user = student.user
    return {
        "id": reg.id,
        "status": reg.status,
        "message": reg.message,
        "createdAt": reg.created_at,
        "reviewedAt": reg.reviewed_at,
        "rejectionReason": reg.rejection_reason,
        "student": {
            "id": student.id,
            "name": user.full_name,
            "email": user.email,
            "phone": user.phone,
            "dateOfBirth": student.date_of_birth,
            "gender": student.gender,
            "nationality": student.nationality,
            "address": student.address,
            "city": student.city,
            "state": student.state,
            "country": student.country,
            "emergencyContact": {
                "name": student.emergency_contact_name,
                "phone": student.emergency_contact_phone,
                "email": student.emergency_contact_email,
            },
            "previousEducation": student.previous_education,
            "workExperience": student.work_experience,
        },
        "course": course_stats(reg.course),
    }
