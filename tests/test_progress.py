import pytest

from registrar.domain.entities import EnrollmentStatus
from registrar.infrastructure.models import Enrollment, StudentProgress


@pytest.fixture
def enrolled(db, student_user, make_course):
    course = make_course(lessons=2)
    db.add(Enrollment(student_id=student_user.student.id, course_id=course.id,
                      status=EnrollmentStatus.ACTIVE.value))
    db.commit()
    lesson_ids = [lesson.id for lesson in course.modules[0].lessons]
    return course, lesson_ids


def test_record_lesson_progress(client, student_headers, enrolled):
    course, lesson_ids = enrolled
    response = client.post("/api/progress/lessons", headers=student_headers,
                           json={"lessonId": lesson_ids[0], "isCompleted": True, "timeSpent": 30})
    assert response.status_code == 200
    data = response.json()
    assert data["progress"]["completedLessons"] == 1
    assert data["progress"]["totalLessons"] == 2
    assert data["progress"]["progressPercent"] == 50
    assert data["lessonProgress"]["isCompleted"] is True
    assert data["lessonProgress"]["timeSpent"] == 30


def test_repeat_is_idempotent_for_completion(client, student_headers, enrolled):
    _, lesson_ids = enrolled
    body = {"lessonId": lesson_ids[0], "isCompleted": True, "timeSpent": 10}
    client.post("/api/progress/lessons", headers=student_headers, json=body)
    data = client.post("/api/progress/lessons", headers=student_headers, json=body).json()
    assert data["progress"]["completedLessons"] == 1
    assert data["progress"]["totalTimeSpent"] == 20
    assert data["lessonProgress"]["timeSpent"] == 20


def test_completing_course_completes_enrollment(client, db, student_user, student_headers, enrolled):
    course, lesson_ids = enrolled
    for lesson_id in lesson_ids:
        client.post("/api/progress/lessons", headers=student_headers,
                    json={"lessonId": lesson_id, "isCompleted": True})
    db.expire_all()
    enrollment = db.query(Enrollment).filter_by(student_id=student_user.student.id, course_id=course.id).one()
    assert enrollment.status == EnrollmentStatus.COMPLETED.value
    assert enrollment.completed_at is not None
    progress = db.query(StudentProgress).one()
    assert progress.progress_percent == 100


def test_not_enrolled(client, student_headers, make_course):
    course = make_course()
    lesson_id = course.modules[0].lessons[0].id
    response = client.post("/api/progress/lessons", headers=student_headers,
                           json={"lessonId": lesson_id, "isCompleted": True})
    assert response.status_code == 403
    assert response.json()["code"] == "NOT_ENROLLED"


def test_unknown_lesson(client, student_headers):
    response = client.post("/api/progress/lessons", headers=student_headers,
                           json={"lessonId": 999, "isCompleted": True})
    assert response.status_code == 404
    assert response.json()["code"] == "LESSON_NOT_FOUND"


def test_admin_cannot_record_progress(client, admin_headers):
    response = client.post("/api/progress/lessons", headers=admin_headers, json={"lessonId": 1, "isCompleted": True})
    assert response.status_code == 403


def test_course_progress(client, student_headers, enrolled):
    course, lesson_ids = enrolled
    client.post("/api/progress/lessons", headers=student_headers,
                json={"lessonId": lesson_ids[1], "isCompleted": False, "timeSpent": 5})
    data = client.get(f"/api/progress/courses/{course.id}", headers=student_headers).json()["progress"]
    assert data["course"]["id"] == course.id
    assert data["completedLessons"] == 0
    assert data["lessonDetails"][0]["lessonId"] == lesson_ids[1]
    assert data["lessonDetails"][0]["moduleTitle"] == "Accounting Fundamentals"


def test_course_progress_missing(client, student_headers, make_course):
    course = make_course()
    response = client.get(f"/api/progress/courses/{course.id}", headers=student_headers)
    assert response.status_code == 404
