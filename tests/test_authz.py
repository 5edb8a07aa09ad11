from conftest import auth_headers

from registrar.domain.entities import CurrentUser, Role, UserStatus
from registrar.infrastructure.security import create_access_token
from registrar.interfaces.http.authz import has_role, is_self_or_admin

STUDENT = CurrentUser(id=1, email="s@example.com", role="STUDENT", status="ACTIVE")
ADMIN = CurrentUser(id=2, email="a@example.com", role="ADMIN", status="ACTIVE")


def test_has_role():
    assert has_role(ADMIN, ["ADMIN"])
    assert has_role(STUDENT, ["STUDENT", "ADMIN"])
    assert not has_role(STUDENT, ["ADMIN"])
    assert not has_role(None, ["STUDENT"])


def test_is_self_or_admin():
    assert is_self_or_admin(STUDENT, 1)
    assert not is_self_or_admin(STUDENT, 99)
    assert is_self_or_admin(ADMIN, 99)
    assert not is_self_or_admin(None, 1)


def test_no_authorization_header(client):
    response = client.get("/api/auth/verify")
    assert response.status_code == 401
    assert response.json()["code"] == "AUTH_REQUIRED"


def test_non_bearer_scheme(client, student_user):
    response = client.get("/api/auth/verify", headers={"Authorization": "Basic abc"})
    assert response.status_code == 401
    assert response.json()["code"] == "AUTH_REQUIRED"


def test_invalid_token(client):
    response = client.get("/api/auth/verify", headers={"Authorization": "Bearer garbage"})
    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_TOKEN"


def test_expired_token(client, student_user):
    token = create_access_token(student_user.id, student_user.email, student_user.role, minutes=-5)
    response = client.get("/api/auth/verify", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401
    assert response.json()["code"] == "TOKEN_EXPIRED"


def test_token_for_deleted_user(client):
    token = create_access_token(4242, "ghost@example.com", "STUDENT")
    response = client.get("/api/auth/verify", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401
    body = response.json()
    assert body["code"] == "INVALID_TOKEN"
    assert body["error"] == "User not found"


def test_inactive_user(client, make_user):
    """A valid token is rejected once the account is no longer active"""
    user = make_user(email="idle@example.com", status=UserStatus.INACTIVE)
    response = client.get("/api/auth/verify", headers=auth_headers(user))
    assert response.status_code == 401
    assert response.json()["code"] == "ACCOUNT_INACTIVE"


def test_insufficient_role(client, student_headers):
    response = client.get("/api/registrations", headers=student_headers)
    assert response.status_code == 403
    assert response.json()["code"] == "INSUFFICIENT_PERMISSIONS"


def test_authenticated_identity(client, student_user, student_headers):
    response = client.get("/api/auth/verify", headers=student_headers)
    assert response.status_code == 200
    assert response.json()["user"] == {
        "id": student_user.id, "email": student_user.email, "role": "STUDENT", "status": "ACTIVE",
    }


def test_self_or_admin_by_user_id(client, make_user, student_user, student_headers, admin_headers):
    other = make_user(email="other@example.com")
    assert client.get(f"/api/progress/users/{student_user.id}", headers=student_headers).status_code == 200
    denied = client.get(f"/api/progress/users/{other.id}", headers=student_headers)
    assert denied.status_code == 403
    assert denied.json()["code"] == "ACCESS_DENIED"
    assert client.get(f"/api/progress/users/{other.id}", headers=admin_headers).status_code == 200


def test_optional_auth_ignores_bad_token(client, make_course):
    make_course()
    response = client.get("/api/courses", headers={"Authorization": "Bearer garbage"})
    assert response.status_code == 200
    assert response.json()["pagination"]["total"] == 1


def test_admin_role_value():
    assert Role.ADMIN.value == ADMIN.role
    assert ADMIN.is_admin and not STUDENT.is_admin
