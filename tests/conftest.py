import os
import tempfile

# settings are read at import time
os.environ["ENV"] = "test"
os.environ["JWT_SECRET"] = "test-secret-key"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["CACHE_ENABLED"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["UPLOAD_PATH"] = tempfile.mkdtemp(prefix="registrar-uploads-")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from registrar.domain.entities import Role, UserStatus
from registrar.infrastructure.db import Base, get_db
from registrar.infrastructure.models import Course, CourseModule, Lesson, Student, User
from registrar.infrastructure.security import PasswordHasher, create_access_token
from registrar.main import app

# in-memory database shared by every session through one connection
test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

PASSWORD = "Secret123"


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


@pytest.fixture
def db():
    """Fresh schema for every test."""
    Base.metadata.drop_all(bind=test_engine)
    Base.metadata.create_all(bind=test_engine)
    session = TestingSessionLocal()
    yield session
    session.close()
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def client(db):
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def make_user(db):
    hasher = PasswordHasher()

    def _make(email="user@example.com", role=Role.STUDENT, status=UserStatus.ACTIVE,
              password=PASSWORD, with_student=True, first_name="Ada", last_name="Obi"):
        user = User(
            email=email,
            password_hash=hasher.hash(password) if password else None,
            first_name=first_name,
            last_name=last_name,
            phone="+2348012345678",
            role=role.value,
            status=status.value,
        )
        if with_student and role is Role.STUDENT:
            user.student = Student(city="Lagos", state="Lagos", previous_education="BSc")
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def make_course(db):
    def _make(title="ICA Foundation", lessons=3, is_active=True, category="Professional"):
        course = Course(
            title=title,
            description="Foundation level certification in accounting.",
            category=category,
            duration="6 months",
            price=150000,
            is_active=is_active,
        )
        module = CourseModule(title="Accounting Fundamentals", order_index=1)
        module.lessons = [Lesson(title=f"Lesson {i}", order_index=i, resources=[]) for i in range(1, lessons + 1)]
        course.modules = [module]
        db.add(course)
        db.commit()
        db.refresh(course)
        return course

    return _make


def auth_headers(user: User) -> dict:
    token = create_access_token(user.id, user.email, user.role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin(make_user):
    return make_user(email="admin@eckschool.com", role=Role.ADMIN, with_student=False)


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)


@pytest.fixture
def student_user(make_user):
    return make_user(email="student@example.com")


@pytest.fixture
def student_headers(student_user):
    return auth_headers(student_user)
