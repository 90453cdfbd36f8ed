"""
Pytest configuration and shared fixtures.

No test needs a running database: repositories are mocked for the service
tests and services are mocked for the API tests.
"""

import io
import os
import tempfile

# Settings are read when the app module is imported
os.environ["DATABASE_AUTO_CREATE"] = "false"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="wastewatch-test-uploads-")
os.environ["JWT_SECRET_KEY"] = "test-secret-key"
os.environ.pop("ROBOFLOW_API_KEY", None)
os.environ.pop("AUTHORITY_REGISTRATION_CODE", None)

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
from PIL import Image

from wastewatch.database.models import Report, User
from wastewatch.database.repositories.report import ReportRepository
from wastewatch.services.image_storage import ImageStorage, UploadedImage


@pytest.fixture
def make_user():
    """Factory for transient users."""

    def _make_user(role: str = "citizen", **overrides) -> User:
        now = datetime.now(timezone.utc)
        fields = {
            "id": uuid4(),
            "name": f"{role.title()} User",
            "email": f"{role}-{uuid4().hex[:6]}@example.com",
            "password_hash": "not-a-real-hash",
            "role": role,
            "is_active": True,
            "created_at": now,
            "updated_at": now,
        }
        fields.update(overrides)
        return User(**fields)

    return _make_user


@pytest.fixture
def citizen(make_user):
    return make_user("citizen")


@pytest.fixture
def authority(make_user):
    return make_user("authority")


@pytest.fixture
def make_report(make_user):
    """Factory for transient reports with the reporter attached."""

    def _make_report(reporter: User = None, **overrides) -> Report:
        reporter = reporter or make_user()
        now = datetime.now(timezone.utc)
        fields = {
            "id": uuid4(),
            "reporter_id": reporter.id,
            "title": "Dumped bottles",
            "description": "Plastic bottles piled near the bus stop",
            "images": [],
            "latitude": 12.9,
            "longitude": 77.6,
            "address": "MG Road",
            "category": "plastic",
            "severity": "high",
            "status": "open",
            "resolved_at": None,
            "resolved_by_id": None,
            "resolution_notes": "",
            "resolution_images": [],
            "detection_results": [],
            "detection_summary": None,
            "created_at": now,
            "updated_at": now,
        }
        resolver = overrides.pop("resolver", None)
        fields.update(overrides)
        report = Report(**fields)
        report.reporter = reporter
        report.resolver = resolver
        return report

    return _make_report


@pytest.fixture
def report_repository():
    """Mocked report repository; async methods are AsyncMocks."""
    repository = MagicMock(spec=ReportRepository)
    repository.commit = AsyncMock()
    return repository


@pytest.fixture
def publisher():
    publisher = MagicMock()
    publisher.publish = AsyncMock()
    return publisher


@pytest.fixture
def storage(tmp_path):
    return ImageStorage(upload_dir=tmp_path / "uploads")


def image_bytes(size=(64, 48), mode="RGB", fmt="PNG", color="red") -> bytes:
    buffer = io.BytesIO()
    Image.new(mode, size, color).save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def make_image():
    """Factory for encoded image bytes."""
    return image_bytes


@pytest.fixture
def png_upload():
    """Factory for in-memory PNG uploads."""

    def _png_upload(size=(64, 48), filename="photo.png") -> UploadedImage:
        return UploadedImage(filename=filename, content_type="image/png", data=image_bytes(size))

    return _png_upload


async def _mock_db():
    session = MagicMock()
    session.commit = AsyncMock()
    yield session


@pytest.fixture
def app():
    """The application with the database session mocked out."""
    from wastewatch.database.connection import get_db
    from wastewatch.main import app

    app.dependency_overrides[get_db] = _mock_db
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def login_as(app):
    """Make every request of the test authenticate as the given user."""
    from wastewatch.middleware.auth import get_current_user

    def _login_as(user: User) -> User:
        app.dependency_overrides[get_current_user] = lambda: user
        return user

    return _login_as
