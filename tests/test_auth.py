import pytest
from django.core import signing

from alumni.auth import TOKEN_SALT, issue_token, user_for_token
from alumni.errors import NotAuthenticated
from alumni.models import User

pytestmark = pytest.mark.django_db

REGISTRATION = {
    "name": "New Student",
    "email": "New.Student@Example.com",
    "password": "secret123",
    "role": "student",
    "graduationYear": 2026,
    "major": "Physics",
}


def test_register_creates_unapproved_user(api):
    response = api().post("/api/auth/register", REGISTRATION)

    assert response.status_code == 201
    body = response.json()
    assert body["token"]
    assert body["user"]["email"] == "new.student@example.com"
    assert body["user"]["isApproved"] is False
    assert "password" not in body["user"]
    assert User.objects.get(email="new.student@example.com").check_password("secret123")


def test_register_rejects_admin_role(api):
    response = api().post("/api/auth/register", {**REGISTRATION, "role": "admin"})

    assert response.status_code == 400
    assert response.json()["message"] == "Admin registration not allowed"


def test_register_requires_graduation_details(api):
    data = {key: value for key, value in REGISTRATION.items() if key != "major"}

    response = api().post("/api/auth/register", data)

    assert response.status_code == 400
    assert response.json()["message"] == "Graduation year and major are required for alumni and students"


def test_register_rejects_duplicate_email(api, student):
    response = api().post("/api/auth/register", {**REGISTRATION, "email": student.email})

    assert response.status_code == 400
    assert response.json()["message"] == "User already exists"


def test_register_short_password(api):
    response = api().post("/api/auth/register", {**REGISTRATION, "password": "abc"})

    assert response.status_code == 400
    assert "errors" in response.json()
    assert response.json()["errors"]["password"] == ["Password must be at least 6 characters long"]


def test_approval_flow_end_to_end(api, admin_user):
    api().post("/api/auth/register", REGISTRATION)
    credentials = {"email": REGISTRATION["email"], "password": REGISTRATION["password"]}

    pending = api().post("/api/auth/login", credentials)
    assert pending.status_code == 401
    assert pending.json()["message"] == "Account pending approval"

    user = User.objects.get(email="new.student@example.com")
    approved = api(admin_user).put(f"/api/auth/approve-user/{user.pk}", {"isApproved": True})
    assert approved.status_code == 200
    assert approved.json()["user"]["isApproved"] is True
    assert approved.json()["user"]["approvedAt"] is not None

    login = api().post("/api/auth/login", credentials)
    assert login.status_code == 200
    token = login.json()["token"]
    assert user_for_token(token).pk == user.pk


def test_login_with_wrong_password(api, student):
    response = api().post("/api/auth/login", {"email": student.email, "password": "nope"})

    assert response.status_code == 401
    assert response.json()["message"] == "Invalid credentials"


def test_approval_requires_boolean(api, admin_user, student):
    response = api(admin_user).put(f"/api/auth/approve-user/{student.pk}", {"isApproved": "yes"})

    assert response.status_code == 400
    assert response.json()["message"] == "isApproved must be a boolean value"


def test_cannot_modify_admin_approval(api, admin_user):
    other_admin = User.objects.create_superuser("root@example.com", "admin123456", name="Root")

    response = api(admin_user).put(f"/api/auth/approve-user/{other_admin.pk}", {"isApproved": False})

    assert response.status_code == 400
    assert response.json()["message"] == "Cannot modify admin users"


def test_me_requires_token(api):
    response = api().get("/api/auth/me")

    assert response.status_code == 401
    assert response.json()["message"] == "Not authorized, no token"


def test_me_with_bad_token(api, student):
    client = api()
    client.token = "not-a-token"

    response = client.get("/api/auth/me")

    assert response.status_code == 401
    assert response.json()["message"] == "Not authorized, token failed"


def test_token_for_unapproved_user_is_refused(student):
    student.is_approved = False
    student.save()

    with pytest.raises(NotAuthenticated, match="Account pending approval"):
        user_for_token(issue_token(student))


def test_token_for_missing_user(student):
    token = signing.dumps({"id": student.pk + 1000}, salt=TOKEN_SALT, compress=True)

    with pytest.raises(NotAuthenticated, match="user not found"):
        user_for_token(token)


def test_pending_users_is_admin_only(api, student, admin_user):
    waiting = User.objects.create_user("waiting@example.com", "password123", name="Waiting")

    denied = api(student).get("/api/auth/pending-users")
    allowed = api(admin_user).get("/api/auth/pending-users")

    assert denied.status_code == 403
    assert denied.json()["message"] == "User role student is not authorized to access this route"
    assert [u["_id"] for u in allowed.json()["users"]] == [waiting.pk]


def test_update_profile_keeps_unsent_fields(api, alumni):
    response = api(alumni).put("/api/auth/update-profile", {
        "bio": "Engineer",
        "socialLinks": {"github": "https://github.com/mentor", "myspace": "x"},
    })

    assert response.status_code == 200
    user = response.json()["user"]
    assert user["bio"] == "Engineer"
    assert user["major"] == "Computer Science"
    assert user["socialLinks"] == {"github": "https://github.com/mentor"}


def test_update_profile_rejects_bad_graduation_year(api, alumni):
    response = api(alumni).put("/api/auth/update-profile", {"graduationYear": 1900})

    assert response.status_code == 400
    assert response.json()["message"] == "Please provide a valid graduation year"


def test_version_increments_on_every_save(student):
    assert student.version == 1

    student.bio = "hello"
    student.save()
    student.location = "Pune"
    student.save(update_fields=["location"])

    student.refresh_from_db()
    assert student.version == 3


def test_unknown_method_returns_405(api, student):
    response = api(student).delete("/api/auth/me")

    assert response.status_code == 405
