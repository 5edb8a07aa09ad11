"""Populate a development database: `python -m registrar.seed`.

Safe to run repeatedly; existing users and courses are matched by email and
title and left in place.
"""
import logging
from datetime import date

import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session

from .config import settings
from .domain.entities import EnrollmentStatus, PaymentStatus, Role, UserStatus
from .infrastructure.db import Base, SessionLocal, engine
from .infrastructure.models import (
    AdminUser, Course, CourseModule, Enrollment, Lesson, Student, StudentProgress, User, utcnow,
)
from .infrastructure.security import PasswordHasher

logger = structlog.get_logger()

ADMIN_EMAIL = "admin@eckschool.com"
ADMIN_PASSWORD = "Admin1234"
STUDENT_EMAIL = "student@example.com"
STUDENT_PASSWORD = "Student123"

COURSES = [
    {
        "title": "ICA Foundation",
        "description": "Foundation level certification in accounting fundamentals, business ethics, and basic financial reporting.",
        "category": "Professional",
        "level": "Foundation",
        "duration": "6 months",
        "price": 150000,
        "prerequisites": "WAEC/NECO with Mathematics and English",
    },
    {
        "title": "ICA Intermediate",
        "description": "Intermediate level covering advanced accounting principles, corporate reporting, and taxation.",
        "category": "Professional",
        "level": "Intermediate",
        "duration": "8 months",
        "price": 200000,
        "prerequisites": "ICA Foundation or equivalent qualification",
    },
    {
        "title": "ICA Professional",
        "description": "Professional level qualification covering strategic management accounting, audit, and corporate finance.",
        "category": "Professional",
        "level": "Professional",
        "duration": "12 months",
        "price": 300000,
        "prerequisites": "ICA Intermediate or relevant degree",
    },
    {
        "title": "ICA Public Sector Accounting",
        "description": "Specialized course in public sector financial management and governmental accounting principles.",
        "category": "Specialized",
        "level": "Intermediate",
        "duration": "6 months",
        "price": 180000,
        "prerequisites": "Basic accounting knowledge",
    },
    {
        "title": "ICA Forensic Accounting",
        "description": "Advanced course in forensic accounting, fraud detection, and financial investigation techniques.",
        "category": "Specialized",
        "level": "Advanced",
        "duration": "9 months",
        "price": 250000,
        "prerequisites": "ICA Intermediate or professional experience",
    },
    {
        "title": "ICA Islamic Finance",
        "description": "Comprehensive course on Islamic banking, Sharia-compliant finance, and ethical financial practices.",
        "category": "Specialized",
        "level": "Intermediate",
        "duration": "6 months",
        "price": 175000,
        "prerequisites": "Basic finance knowledge",
    },
]

FOUNDATION_MODULES = [
    ("Accounting Fundamentals", "Basic principles of accounting and bookkeeping", [
        ("Introduction to Accounting", "Overview of accounting principles and concepts", "45 minutes"),
        ("Double Entry Bookkeeping", "Understanding the double entry system", "60 minutes"),
        ("Chart of Accounts", "Setting up and managing chart of accounts", "30 minutes"),
    ]),
    ("Financial Statements", "Preparation and analysis of financial statements", [
        ("Balance Sheet Preparation", "How to prepare a balance sheet", "50 minutes"),
        ("Income Statement", "Creating profit and loss statements", "45 minutes"),
    ]),
    ("Business Ethics", "Professional ethics and conduct in accounting", [
        ("Professional Ethics", "Ethical standards for accountants", "40 minutes"),
    ]),
]


def _user(db: Session, email: str) -> User | None:
    return db.scalars(select(User).where(User.email == email)).first()


def seed_admin(db: Session, hasher: PasswordHasher) -> User:
    user = _user(db, ADMIN_EMAIL)
    if user:
        return user
    user = User(
        email=ADMIN_EMAIL,
        password_hash=hasher.hash(ADMIN_PASSWORD),
        first_name="Admin",
        last_name="User",
        phone="+234-123-456-7890",
        role=Role.ADMIN.value,
        status=UserStatus.ACTIVE.value,
    )
    user.admin_user = AdminUser(
        department="Administration",
        permissions=["MANAGE_STUDENTS", "MANAGE_COURSES", "VIEW_REPORTS"],
    )
    db.add(user)
    db.flush()
    logger.info("seed_admin_created", email=user.email)
    return user


def seed_student(db: Session, hasher: PasswordHasher) -> User:
    user = _user(db, STUDENT_EMAIL)
    if user:
        return user
    user = User(
        email=STUDENT_EMAIL,
        password_hash=hasher.hash(STUDENT_PASSWORD),
        first_name="John",
        last_name="Doe",
        phone="+234-987-654-3210",
        role=Role.STUDENT.value,
        status=UserStatus.ACTIVE.value,
    )
    user.student = Student(
        date_of_birth=date(1995, 6, 15),
        gender="Male",
        nationality="Nigerian",
        address="123 Main Street",
        city="Lagos",
        state="Lagos",
        postal_code="100001",
        country="Nigeria",
        emergency_contact_name="Jane Doe",
        emergency_contact_phone="+234-555-123-456",
        emergency_contact_email="jane.doe@example.com",
        previous_education="Bachelor's Degree in Business Administration",
        work_experience="2 years in accounting",
    )
    db.add(user)
    db.flush()
    logger.info("seed_student_created", email=user.email)
    return user


def seed_courses(db: Session) -> dict[str, Course]:
    courses = {}
    for data in COURSES:
        course = db.scalars(select(Course).where(Course.title == data["title"])).first()
        if course is None:
            course = Course(currency="NGN", **data)
            db.add(course)
        else:
            for field, value in data.items():
                setattr(course, field, value)
        courses[data["title"]] = course
    db.flush()

    foundation = courses["ICA Foundation"]
    if not foundation.modules:
        for m_index, (title, description, lessons) in enumerate(FOUNDATION_MODULES, start=1):
            module = CourseModule(title=title, description=description, order_index=m_index)
            module.lessons = [
                Lesson(title=l_title, description=l_desc, content=f"{l_desc}.", duration=duration,
                       order_index=l_index, resources=[])
                for l_index, (l_title, l_desc, duration) in enumerate(lessons, start=1)
            ]
            foundation.modules.append(module)
        db.flush()
    logger.info("seed_courses_ready", count=len(courses))
    return courses


def seed_enrollment(db: Session, student: Student, course: Course) -> None:
    exists = db.scalars(
        select(Enrollment).where(Enrollment.student_id == student.id, Enrollment.course_id == course.id)
    ).first()
    if exists:
        return
    total = course.total_lessons
    db.add(Enrollment(student_id=student.id, course_id=course.id,
                      status=EnrollmentStatus.ACTIVE.value, payment_status=PaymentStatus.PAID.value))
    db.add(StudentProgress(
        student_id=student.id,
        course_id=course.id,
        total_lessons=total,
        completed_lessons=0,
        progress_percent=0.0,
        total_time_spent=0,
        last_accessed_at=utcnow(),
    ))
    logger.info("seed_enrollment_created", student_id=student.id, course_id=course.id)


def run(db: Session) -> None:
    hasher = PasswordHasher()
    seed_admin(db, hasher)
    student_user = seed_student(db, hasher)
    courses = seed_courses(db)
    seed_enrollment(db, student_user.student, courses["ICA Foundation"])
    db.commit()


def main():
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(level))
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        run(db)
    except Exception:
        db.rollback()
        logger.exception("seed_failed")
        raise
    finally:
        db.close()
    logger.info("seed_completed")


if __name__ == "__main__":
    main()
