from conftest import auth_headers

from registrar.domain.entities import EnrollmentStatus, Role
from registrar.infrastructure.models import Enrollment, Registration, StudentProgress, utcnow


def enroll(db, student, course, completed=0):
    db.add(Enrollment(student_id=student.id, course_id=course.id, status=EnrollmentStatus.ACTIVE.value))
    db.add(StudentProgress(
        student_id=student.id,
        course_id=course.id,
        total_lessons=course.total_lessons,
        completed_lessons=completed,
        progress_percent=completed / course.total_lessons * 100,
        last_accessed_at=utcnow(),
    ))
    db.add(Registration(student_id=student.id, course_id=course.id, status="APPROVED"))
    db.commit()


def test_dashboard(client, db, student_user, student_headers, make_course):
    course = make_course(lessons=4)
    enroll(db, student_user.student, course, completed=1)

    response = client.get("/api/students/dashboard", headers=student_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["student"]["email"] == student_user.email
    assert data["statistics"] == {
        "totalCourses": 1,
        "activeCourses": 1,
        "completedCourses": 0,
        "totalLessons": 4,
        "completedLessons": 1,
        "overallProgress": 25,
    }
    assert data["enrollments"][0]["course"]["totalLessons"] == 4
    assert data["enrollments"][0]["progress"]["completedLessons"] == 1
    assert data["recentActivity"][0]["progressPercent"] == 25
    assert data["registrations"][0]["status"] == "APPROVED"


def test_dashboard_without_student_profile(client, admin_headers):
    response = client.get("/api/students/dashboard", headers=admin_headers)
    assert response.status_code == 404
    assert response.json()["code"] == "STUDENT_NOT_FOUND"


def test_list_students_admin_only(client, student_headers):
    assert client.get("/api/students", headers=student_headers).status_code == 403


def test_list_students(client, make_user, admin_headers):
    for i in range(3):
        make_user(email=f"learner{i}@example.com", first_name=f"Learner{i}")
    make_user(email="zed@example.com", first_name="Zed")

    data = client.get("/api/students?limit=2", headers=admin_headers).json()
    assert len(data["students"]) == 2
    assert data["pagination"] == {"page": 1, "limit": 2, "total": 4, "pages": 2}

    found = client.get("/api/students?q=zed", headers=admin_headers).json()
    assert [s["email"] for s in found["students"]] == ["zed@example.com"]
    assert found["students"][0]["statistics"]["averageProgress"] == 0


def test_get_student_self_and_admin(client, student_user, student_headers, admin_headers, make_course, db):
    course = make_course()
    enroll(db, student_user.student, course, completed=0)
    student_id = student_user.student.id

    own = client.get(f"/api/students/{student_id}", headers=student_headers)
    assert own.status_code == 200
    body = own.json()
    assert body["student"]["address"]["city"] == "Lagos"
    assert body["enrollments"][0]["course"]["totalModules"] == 1
    assert body["courseProgress"][0]["lessonDetails"] == []

    assert client.get(f"/api/students/{student_id}", headers=admin_headers).status_code == 200


def test_get_student_other(client, make_user, student_user):
    other = make_user(email="other@example.com")
    response = client.get(f"/api/students/{student_user.student.id}", headers=auth_headers(other))
    assert response.status_code == 403
    assert response.json()["code"] == "ACCESS_DENIED"


def test_get_student_missing(client, admin_headers):
    response = client.get("/api/students/999", headers=admin_headers)
    assert response.status_code == 404
    assert response.json()["code"] == "STUDENT_NOT_FOUND"


def test_update_student_profile(client, student_headers):
    response = client.put("/api/students/profile", headers=student_headers, json={
        "nationality": "Nigerian",
        "postalCode": "100001",
        "emergencyContactName": "Jane Doe",
        "dateOfBirth": "1995-06-15",
    })
    assert response.status_code == 200
    student = response.json()["student"]
    assert student["personalInfo"]["nationality"] == "Nigerian"
    assert student["personalInfo"]["dateOfBirth"] == "1995-06-15"
    assert student["address"]["postalCode"] == "100001"
    assert student["address"]["city"] == "Lagos"
    assert student["emergencyContact"]["name"] == "Jane Doe"


def test_update_profile_requires_student(client, make_user):
    user = make_user(email="admin2@example.com", role=Role.ADMIN, with_student=False)
    response = client.put("/api/students/profile", headers=auth_headers(user), json={"city": "Kano"})
    assert response.status_code == 404


def test_update_student_profile_clears_field(client, student_headers):
    response = client.put("/api/students/profile", headers=student_headers, json={"city": None})
    assert response.status_code == 200
    student = response.json()["student"]
    assert student["address"]["city"] is None
    assert student["address"]["state"] == "Lagos"
