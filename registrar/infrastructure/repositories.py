"""Repositories wrapping SQLAlchemy access for each aggregate.

Every database call goes through `translate_errors`, which rolls the session
back and re-raises SQLAlchemy failures as `DataAccessError` with a closed
`DataErrorKind`. Nothing above this module needs to know SQLAlchemy's
exception classes.
"""
import re
from contextlib import contextmanager
from datetime import date, datetime, time, timedelta

from sqlalchemy import asc, desc, func, or_, select
from sqlalchemy.exc import (
    DataError, DBAPIError, IntegrityError, NoResultFound, OperationalError,
    ProgrammingError, SQLAlchemyError, StatementError,
)
from sqlalchemy.orm import Session, selectinload

from ..domain.errors import DataAccessError, DataErrorKind
from .models import (
    AdminUser, Course, CourseModule, Enrollment, Lesson, LessonProgress, Registration,
    Student, StudentProgress, User,
)

_SQLITE_COLUMN = re.compile(r"constraint failed: \w+\.(\w+)")
_PG_KEY = re.compile(r"Key \((\w+)")
_PG_COLUMN = re.compile(r'column "(\w+)"')


def _classify_integrity(e: IntegrityError) -> DataAccessError:
    text = str(e.orig)
    lowered = text.lower()
    pgcode = getattr(e.orig, "pgcode", None)

    if pgcode == "23505" or "unique" in lowered or "duplicate key" in lowered:
        m = _SQLITE_COLUMN.search(text) or _PG_KEY.search(text)
        return DataAccessError(DataErrorKind.UNIQUE_VIOLATION, text,
                               field=m.group(1) if m else None, driver_code=pgcode)
    if pgcode == "23503" or "foreign key" in lowered:
        return DataAccessError(DataErrorKind.FOREIGN_KEY_VIOLATION, text, driver_code=pgcode)
    if pgcode == "23502" or "not null" in lowered or "null value" in lowered:
        m = _SQLITE_COLUMN.search(text) or _PG_COLUMN.search(text)
        return DataAccessError(DataErrorKind.REQUIRED_RELATION, text,
                               field=m.group(1) if m else None, driver_code=pgcode)
    return DataAccessError(DataErrorKind.UNKNOWN, text, driver_code=pgcode)


def _classify_operational(e: DBAPIError) -> DataAccessError:
    text = str(e.orig)
    lowered = text.lower()
    if "no such table" in lowered or "no such column" in lowered or "does not exist" in lowered:
        return DataAccessError(DataErrorKind.SCHEMA_ERROR, text)
    return DataAccessError(DataErrorKind.CONNECTION_ERROR, text)


def to_data_access_error(e: SQLAlchemyError) -> DataAccessError:
    if isinstance(e, IntegrityError):
        return _classify_integrity(e)
    if isinstance(e, NoResultFound):
        return DataAccessError(DataErrorKind.NOT_FOUND, str(e))
    if isinstance(e, ProgrammingError):
        return DataAccessError(DataErrorKind.SCHEMA_ERROR, str(e.orig))
    if isinstance(e, OperationalError):
        return _classify_operational(e)
    if isinstance(e, DataError):
        return DataAccessError(DataErrorKind.INVALID_DATA, str(e.orig))
    if isinstance(e, DBAPIError):
        if e.connection_invalidated:
            return DataAccessError(DataErrorKind.CONNECTION_ERROR, str(e))
        return DataAccessError(DataErrorKind.UNKNOWN, str(e.orig))
    if isinstance(e, StatementError):
        return DataAccessError(DataErrorKind.INVALID_DATA, str(e))
    return DataAccessError(DataErrorKind.UNKNOWN, str(e))


@contextmanager
def translate_errors(db: Session):
    try:
        yield
    except SQLAlchemyError as e:
        db.rollback()
        raise to_data_access_error(e) from e


def _sort(column, order: str):
    return asc(column) if order == "asc" else desc(column)


def _day_start(d: date) -> datetime:
    return datetime.combine(d, time.min)


class SqlRepository:
    def __init__(self, db: Session): self.db = db

    def add(self, row):
        """Stage `row` and flush so it gets an id; the caller commits."""
        with translate_errors(self.db):
            self.db.add(row)
            self.db.flush()
        return row

    def save(self, row):
        with translate_errors(self.db):
            self.db.add(row)
            self.db.commit()
            self.db.refresh(row)
        return row

    def commit(self):
        with translate_errors(self.db):
            self.db.commit()


class UserRepository(SqlRepository):
    def get(self, user_id: int) -> User | None:
        with translate_errors(self.db):
            return self.db.get(User, user_id)

    def get_by_email(self, email: str) -> User | None:
        with translate_errors(self.db):
            return self.db.scalars(select(User).where(User.email == email.lower())).first()

    def get_profile(self, user_id: int) -> User | None:
        stmt = (
            select(User)
            .where(User.id == user_id)
            .options(
                selectinload(User.student).selectinload(Student.enrollments).selectinload(Enrollment.course),
                selectinload(User.student).selectinload(Student.progress).selectinload(StudentProgress.course),
                selectinload(User.admin_user),
            )
        )
        with translate_errors(self.db):
            return self.db.scalars(stmt).first()


class AdminUserRepository(SqlRepository):
    def get_by_user_id(self, user_id: int) -> AdminUser | None:
        with translate_errors(self.db):
            return self.db.scalars(select(AdminUser).where(AdminUser.user_id == user_id)).first()


class StudentRepository(SqlRepository):
    def get(self, student_id: int) -> Student | None:
        with translate_errors(self.db):
            return self.db.get(Student, student_id)

    def get_by_user_id(self, user_id: int) -> Student | None:
        with translate_errors(self.db):
            return self.db.scalars(select(Student).where(Student.user_id == user_id)).first()

    def _detail_stmt(self):
        return select(Student).options(
            selectinload(Student.user),
            selectinload(Student.enrollments).selectinload(Enrollment.course)
            .selectinload(Course.modules).selectinload(CourseModule.lessons),
            selectinload(Student.progress).selectinload(StudentProgress.course),
            selectinload(Student.progress).selectinload(StudentProgress.lesson_progress)
            .selectinload(LessonProgress.lesson).selectinload(Lesson.module),
            selectinload(Student.registrations).selectinload(Registration.course),
        )

    def get_detail(self, student_id: int) -> Student | None:
        with translate_errors(self.db):
            return self.db.scalars(self._detail_stmt().where(Student.id == student_id)).first()

    def get_detail_by_user_id(self, user_id: int) -> Student | None:
        with translate_errors(self.db):
            return self.db.scalars(self._detail_stmt().where(Student.user_id == user_id)).first()

    def list(self, *, page: int, limit: int, sort_by: str, sort_order: str,
             q: str | None = None, status: str | None = None) -> tuple[list[Student], int]:
        stmt = select(Student).join(Student.user)
        if status:
            stmt = stmt.where(User.status == status)
        if q:
            like = f"%{q}%"
            stmt = stmt.where(or_(User.first_name.ilike(like), User.last_name.ilike(like), User.email.ilike(like)))

        columns = {"createdAt": Student.created_at, "email": User.email,
                   "firstName": User.first_name, "lastName": User.last_name}
        with translate_errors(self.db):
            total = self.db.scalar(select(func.count()).select_from(stmt.subquery()))
            rows = self.db.scalars(
                stmt.options(
                    selectinload(Student.user),
                    selectinload(Student.enrollments),
                    selectinload(Student.progress),
                )
                .order_by(_sort(columns[sort_by], sort_order), Student.id)
                .offset((page - 1) * limit)
                .limit(limit)
            ).all()
        return list(rows), total or 0


class CourseRepository(SqlRepository):
    def get(self, course_id: int) -> Course | None:
        with translate_errors(self.db):
            return self.db.get(Course, course_id)

    def get_detail(self, course_id: int) -> Course | None:
        stmt = (
            select(Course)
            .where(Course.id == course_id)
            .options(selectinload(Course.modules).selectinload(CourseModule.lessons))
        )
        with translate_errors(self.db):
            return self.db.scalars(stmt).first()

    def get_module(self, course_id: int, module_id: int) -> CourseModule | None:
        stmt = select(CourseModule).where(CourseModule.id == module_id, CourseModule.course_id == course_id)
        with translate_errors(self.db):
            return self.db.scalars(stmt).first()

    def get_lesson(self, lesson_id: int) -> Lesson | None:
        stmt = select(Lesson).where(Lesson.id == lesson_id).options(selectinload(Lesson.module))
        with translate_errors(self.db):
            return self.db.scalars(stmt).first()

    def count_lessons(self, course_id: int) -> int:
        stmt = (
            select(func.count(Lesson.id))
            .join(Lesson.module)
            .where(CourseModule.course_id == course_id)
        )
        with translate_errors(self.db):
            return self.db.scalar(stmt) or 0

    def list(self, *, page: int, limit: int, sort_by: str, sort_order: str, q: str | None = None,
             category: str | None = None, include_inactive: bool = False) -> tuple[list[Course], int]:
        stmt = select(Course)
        if not include_inactive:
            stmt = stmt.where(Course.is_active.is_(True))
        if category:
            stmt = stmt.where(Course.category == category)
        if q:
            like = f"%{q}%"
            stmt = stmt.where(or_(Course.title.ilike(like), Course.description.ilike(like)))

        columns = {"createdAt": Course.created_at, "title": Course.title, "price": Course.price}
        with translate_errors(self.db):
            total = self.db.scalar(select(func.count()).select_from(stmt.subquery()))
            rows = self.db.scalars(
                stmt.options(selectinload(Course.modules).selectinload(CourseModule.lessons))
                .order_by(_sort(columns[sort_by], sort_order), Course.id)
                .offset((page - 1) * limit)
                .limit(limit)
            ).all()
        return list(rows), total or 0


class RegistrationRepository(SqlRepository):
    def get(self, registration_id: int) -> Registration | None:
        stmt = (
            select(Registration)
            .where(Registration.id == registration_id)
            .options(
                selectinload(Registration.student).selectinload(Student.user),
                selectinload(Registration.course).selectinload(Course.modules).selectinload(CourseModule.lessons),
            )
        )
        with translate_errors(self.db):
            return self.db.scalars(stmt).first()

    def find_open(self, student_id: int, course_id: int) -> Registration | None:
        stmt = select(Registration).where(
            Registration.student_id == student_id,
            Registration.course_id == course_id,
            Registration.status.in_(("PENDING", "APPROVED")),
        )
        with translate_errors(self.db):
            return self.db.scalars(stmt).first()

    def list(self, *, page: int, limit: int, sort_by: str, sort_order: str, q: str | None = None,
             status: str | None = None, start_date: date | None = None,
             end_date: date | None = None) -> tuple[list[Registration], int]:
        stmt = (
            select(Registration)
            .join(Registration.student)
            .join(Student.user)
            .join(Registration.course)
        )
        if status:
            stmt = stmt.where(Registration.status == status)
        if q:
            like = f"%{q}%"
            stmt = stmt.where(or_(
                User.first_name.ilike(like),
                User.last_name.ilike(like),
                User.email.ilike(like),
                Course.title.ilike(like),
            ))
        if start_date:
            stmt = stmt.where(Registration.created_at >= _day_start(start_date))
        if end_date:
            stmt = stmt.where(Registration.created_at < _day_start(end_date + timedelta(days=1)))

        columns = {"createdAt": Registration.created_at, "reviewedAt": Registration.reviewed_at,
                   "status": Registration.status}
        with translate_errors(self.db):
            total = self.db.scalar(select(func.count()).select_from(stmt.subquery()))
            rows = self.db.scalars(
                stmt.options(
                    selectinload(Registration.student).selectinload(Student.user),
                    selectinload(Registration.course),
                )
                .order_by(_sort(columns[sort_by], sort_order), Registration.id)
                .offset((page - 1) * limit)
                .limit(limit)
            ).all()
        return list(rows), total or 0


class EnrollmentRepository(SqlRepository):
    def get_for(self, student_id: int, course_id: int) -> Enrollment | None:
        stmt = select(Enrollment).where(Enrollment.student_id == student_id, Enrollment.course_id == course_id)
        with translate_errors(self.db):
            return self.db.scalars(stmt).first()

    def count_for(self, student_id: int, course_id: int) -> int:
        stmt = select(func.count(Enrollment.id)).where(
            Enrollment.student_id == student_id, Enrollment.course_id == course_id
        )
        with translate_errors(self.db):
            return self.db.scalar(stmt) or 0


class ProgressRepository(SqlRepository):
    def get_for(self, student_id: int, course_id: int) -> StudentProgress | None:
        stmt = (
            select(StudentProgress)
            .where(StudentProgress.student_id == student_id, StudentProgress.course_id == course_id)
            .options(
                selectinload(StudentProgress.course),
                selectinload(StudentProgress.lesson_progress)
                .selectinload(LessonProgress.lesson).selectinload(Lesson.module),
            )
        )
        with translate_errors(self.db):
            return self.db.scalars(stmt).first()

    def get_lesson_progress(self, progress_id: int, lesson_id: int) -> LessonProgress | None:
        stmt = select(LessonProgress).where(
            LessonProgress.progress_id == progress_id, LessonProgress.lesson_id == lesson_id
        )
        with translate_errors(self.db):
            return self.db.scalars(stmt).first()

    def count_completed(self, progress_id: int) -> int:
        stmt = select(func.count(LessonProgress.id)).where(
            LessonProgress.progress_id == progress_id, LessonProgress.is_completed.is_(True)
        )
        with translate_errors(self.db):
            return self.db.scalar(stmt) or 0
