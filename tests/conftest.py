"""Shared fixtures: a sandbox API, a fake Cloudinary and ready-made app instances"""

from datetime import date, timedelta
from pathlib import Path
from unittest.mock import patch

import cloudinary.exceptions
import pytest
from fastapi.testclient import TestClient

from memoryhaze.app import MemoryHazeApp
from memoryhaze.auth.session import MemoryTokenStore
from memoryhaze.utils.config import ApiSettings, CloudinarySettings, LoggingSettings, Settings
from web.sandbox_api import create_app

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "admin-pass"
CUSTOMER_EMAIL = "alice@example.com"
CUSTOMER_PASSWORD = "alice-pass"
OTHER_EMAIL = "bob@example.com"
OTHER_PASSWORD = "bob-pass"

SCENARIO = "We met on a rainy evening at the old bookshop on the corner. " * 4


class FakeCloudinary:
    """Stands in for cloudinary.uploader.unsigned_upload"""

    def __init__(self):
        self.calls = []
        self.fail_ids = set()
        self.error_message = "Upload preset not found"

    def __call__(self, file, upload_preset, **options):
        self.calls.append({"file": file, "preset": upload_preset, **options})
        folder = options.get("folder")
        name = options.get("public_id") or f"upload{len(self.calls)}"
        if name in self.fail_ids:
            raise cloudinary.exceptions.Error(self.error_message)
        public_id = f"{folder}/{name}" if folder else name
        resource_type = options.get("resource_type", "image")
        ext = "mp3" if resource_type == "video" else "jpg"
        return {
            "secure_url": f"https://res.cloudinary.com/demo/{resource_type}/upload/v1/{public_id}.{ext}",
            "public_id": public_id,
        }


@pytest.fixture
def sandbox():
    return create_app(
        secret_key="sandbox-test-secret-0123456789abcdef",
        admin_email=ADMIN_EMAIL,
        admin_password=ADMIN_PASSWORD,
        bcrypt_rounds=4,
    )


@pytest.fixture
def store(sandbox):
    return sandbox.state.store


@pytest.fixture
def http(sandbox):
    return TestClient(sandbox)


@pytest.fixture
def settings():
    return Settings(
        api=ApiSettings(base_url="http://testserver"),
        cloudinary=CloudinarySettings(cloud_name="demo", upload_preset="gift-photos", audio_upload_preset="gift-audio"),
        logging=LoggingSettings(file_path=None),
    )


@pytest.fixture
def make_app(http, settings):
    def factory():
        return MemoryHazeApp(
            settings=settings,
            http=http,
            token_store=MemoryTokenStore(),
            configure_logging=False,
        ).initialize()

    return factory


@pytest.fixture
def customer(store):
    return store.create_user(CUSTOMER_EMAIL, CUSTOMER_PASSWORD, name="Alice")


@pytest.fixture
def other_customer(store, customer):
    return store.create_user(OTHER_EMAIL, OTHER_PASSWORD, name="Bob")


@pytest.fixture
def admin_app(make_app):
    app = make_app()
    app.auth.login(ADMIN_EMAIL, ADMIN_PASSWORD)
    return app


@pytest.fixture
def customer_app(make_app, customer):
    app = make_app()
    app.auth.login(CUSTOMER_EMAIL, CUSTOMER_PASSWORD)
    return app


@pytest.fixture
def fake_cloudinary():
    fake = FakeCloudinary()
    with patch("cloudinary.uploader.unsigned_upload", side_effect=fake) as mock_upload:
        mock_upload.fake = fake
        yield mock_upload


@pytest.fixture
def draft_fields():
    return dict(
        occasion="birthday",
        recipient_name="Sam",
        occasion_date=date.today() + timedelta(days=10),
        scenarios=[SCENARIO[:200]] * 3,
        song_genre="pop",
        plan="momentum",
        message="Happy birthday!",
    )


@pytest.fixture
def submitted_request(customer_app, fake_cloudinary, draft_fields):
    draft = customer_app.new_submission(**draft_fields)
    draft.add_photos([Path("first.jpg"), Path("second.png")])
    return customer_app.requests.submit(draft)
