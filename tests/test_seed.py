from sqlalchemy import func, select

from registrar import seed
from registrar.infrastructure.models import Course, Enrollment, User


def test_seed_is_repeatable(client, db):
    """Running the seed twice leaves one copy of everything"""
    seed.run(db)
    seed.run(db)

    assert db.scalar(select(func.count()).select_from(User)) == 2
    assert db.scalar(select(func.count()).select_from(Course)) == len(seed.COURSES)
    assert db.scalar(select(func.count()).select_from(Enrollment)) == 1

    foundation = db.scalars(select(Course).where(Course.title == "ICA Foundation")).one()
    assert foundation.total_lessons == 6

    login = client.post("/api/auth/login", json={"email": seed.ADMIN_EMAIL, "password": seed.ADMIN_PASSWORD})
    assert login.status_code == 200
    assert login.json()["user"]["adminUser"]["department"] == "Administration"
