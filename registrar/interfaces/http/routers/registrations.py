from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ....application.use_cases.review_registration import ReviewRegistration
from ....application.use_cases.submit_registration import SubmitRegistration
from ....domain.entities import CurrentUser, RegistrationAction
from ....domain.errors import AppError
from ....infrastructure.db import get_db
from ....infrastructure.repositories import (
    CourseRepository, EnrollmentRepository, ProgressRepository,
    RegistrationRepository, StudentRepository, UserRepository,
)
from ....infrastructure.security import PasswordHasher, generate_temp_password
from ..authz import ensure_self_or_admin, require_admin, require_student_or_admin
from ..presenters import course_brief, pagination, registration_detail, registration_row
from ..schemas import RegistrationActionReq, RegistrationSearchQuery, StudentRegistrationReq
from ..validation import query_model

router = APIRouter(prefix="/registrations", tags=["registrations"])

NEXT_STEPS_SUBMITTED = [
    "Your registration has been submitted for review",
    "You will be notified via email and WhatsApp once approved",
    "Please keep your contact information updated",
]
NEXT_STEPS_APPROVED = [
    "Student enrollment has been created",
    "Student account has been activated",
    "Initial progress tracking has been set up",
]


@router.post("", status_code=status.HTTP_201_CREATED)
def submit_registration(payload: StudentRegistrationReq, db: Session = Depends(get_db)):
    uc = SubmitRegistration(
        users=UserRepository(db),
        students=StudentRepository(db),
        courses=CourseRepository(db),
        registrations=RegistrationRepository(db),
    )
    result = uc.execute(
        first_name=payload.first_name,
        last_name=payload.last_name,
        email=payload.email,
        phone=payload.phone,
        course_id=payload.course_id,
        message=payload.message,
        profile=payload.student_fields(),
    )
    reg = result.registration
    return {
        "message": "Registration submitted successfully",
        "registration": {
            "id": reg.id,
            "status": reg.status,
            "course": course_brief(reg.course),
            "student": {"name": reg.student.user.full_name, "email": reg.student.user.email},
            "createdAt": reg.created_at,
        },
        "whatsappUrl": result.whatsapp_url,
        "nextSteps": NEXT_STEPS_SUBMITTED,
    }


@router.get("", dependencies=[Depends(require_admin)])
def list_registrations(query: RegistrationSearchQuery = Depends(query_model(RegistrationSearchQuery)),
                       db: Session = Depends(get_db)):
    rows, total = RegistrationRepository(db).list(
        page=query.page,
        limit=query.limit,
        sort_by=query.sort_by,
        sort_order=query.sort_order,
        q=query.q,
        status=query.status,
        start_date=query.start_date,
        end_date=query.end_date,
    )
    return {
        "registrations": [registration_row(r) for r in rows],
        "pagination": pagination(query.page, query.limit, total),
    }


@router.get("/{registration_id}")
def get_registration(registration_id: int, user: CurrentUser = Depends(require_student_or_admin),
                     db: Session = Depends(get_db)):
    reg = RegistrationRepository(db).get(registration_id)
    if not reg:
        raise AppError("Registration not found", 404, "REGISTRATION_NOT_FOUND")
    ensure_self_or_admin(user, reg.student.user_id)
    return {"registration": registration_detail(reg)}


@router.patch("/{registration_id}/action")
def review_registration(registration_id: int, payload: RegistrationActionReq,
                        admin: CurrentUser = Depends(require_admin), db: Session = Depends(get_db)):
    uc = ReviewRegistration(
        registrations=RegistrationRepository(db),
        courses=CourseRepository(db),
        enrollments=EnrollmentRepository(db),
        progress=ProgressRepository(db),
        hasher=PasswordHasher(),
        generate_password=generate_temp_password,
    )
    action = RegistrationAction(payload.action)
    result = uc.execute(registration_id, action, payload.message, reviewer_id=admin.id)
    reg = result.registration

    body = {
        "message": f"Registration {action.value}d successfully",
        "registration": {
            "id": reg.id,
            "status": reg.status,
            "reviewedAt": reg.reviewed_at,
            "rejectionReason": reg.rejection_reason,
        },
        "whatsappUrl": result.whatsapp_url,
    }
    if action is RegistrationAction.APPROVE:
        body["nextSteps"] = NEXT_STEPS_APPROVED
        body["enrollmentId"] = result.enrollment.id
        if result.temporary_password:
            body["temporaryPassword"] = result.temporary_password
    return body
