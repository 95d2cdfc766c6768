# backend/tests/conftest.py
import os

# must be set before valerie.config / valerie.database are imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["LOG_DIR"] = ""
os.environ.setdefault("TWILIO_ACCOUNT_SID", "ACtest")
os.environ.setdefault("TWILIO_AUTH_TOKEN", "test_token")
os.environ.setdefault("TWILIO_PHONE_NUMBER", "+15550000000")
os.environ.setdefault("OPENAI_API_KEY", "sk-test")
os.environ.setdefault("STORAGE_ENDPOINT_URL", "https://storage.example.test")

import pytest
from sqlalchemy.orm import sessionmaker

import valerie.models  # noqa: F401
from valerie.database import Base, make_engine
from valerie.services.storage_service import StorageService

from fakes import PUBLIC_BASE, FakeS3, NoSleep


@pytest.fixture
def session_factory():
    engine = make_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    engine.dispose()


@pytest.fixture
def fake_s3():
    return FakeS3()


@pytest.fixture
def storage(fake_s3, session_factory):
    return StorageService(
        s3_client=fake_s3,
        session_factory=session_factory,
        bucket="recordings",
        public_base_url=PUBLIC_BASE,
    )


@pytest.fixture
def no_sleep():
    return NoSleep()
