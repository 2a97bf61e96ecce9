import json

import pytest
from django.apps import apps
from django.test import Client

from alumni.auth import issue_token
from alumni.models import User
from alumni.realtime import RecordingBroadcaster


class ApiClient:
    """Thin JSON wrapper around Django's test client with an optional bearer token."""

    def __init__(self, user=None):
        self.client = Client()
        self.user = user
        self.token = issue_token(user) if user is not None else None

    def _headers(self):
        return {"HTTP_AUTHORIZATION": f"Bearer {self.token}"} if self.token else {}

    def _send(self, method, path, data=None):
        body = json.dumps(data) if data is not None else ""
        return getattr(self.client, method)(path, body, content_type="application/json", **self._headers())

    def get(self, path, params=None):
        return self.client.get(path, params or {}, **self._headers())

    def post(self, path, data=None):
        return self._send("post", path, data)

    def put(self, path, data=None):
        return self._send("put", path, data)

    def patch(self, path, data=None):
        return self._send("patch", path, data)

    def delete(self, path, data=None):
        return self._send("delete", path, data)


def make_user(email, role=User.STUDENT, approved=True, **extra):
    extra.setdefault("name", email.split("@")[0].title())
    if role != User.ADMIN:
        extra.setdefault("graduation_year", 2024)
        extra.setdefault("major", "Computer Science")
    return User.objects.create_user(email, "password123", role=role, is_approved=approved, **extra)


@pytest.fixture
def admin_user(db):
    return User.objects.create_superuser("admin@example.com", "admin123456", name="Admin")


@pytest.fixture
def alumni(db):
    return make_user("mentor@example.com", role=User.ALUMNI, graduation_year=2015)


@pytest.fixture
def other_alumni(db):
    return make_user("other.mentor@example.com", role=User.ALUMNI, graduation_year=2016)


@pytest.fixture
def student(db):
    return make_user("student@example.com")


@pytest.fixture
def other_student(db):
    return make_user("student2@example.com")


@pytest.fixture
def api():
    return ApiClient


@pytest.fixture
def broadcaster():
    config = apps.get_app_config("alumni")
    recorder = RecordingBroadcaster()
    previous = config.use_broadcaster(recorder)
    yield recorder
    config.use_broadcaster(previous)
