"""
Shared fixtures: a throwaway mongomock database per test, fake collaborators
for Cloudinary and SMTP, and the stores wired to them.
"""

import uuid

import mongomock
import pytest

from analytics import AnalyticsAggregator
from database import ensure_indexes
from errors import UpstreamFailure
from feedback import FeedbackStore
from gate import AccessGate
from identity import IdentityStore
from poems import VaultEntryStore
from settings import Settings

PDF_BYTES = b"%PDF-1.4\n1 0 obj <<>> endobj\ntrailer <<>>\n%%EOF\n"


class FakeObjectStore:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.uploads = []

    def store(self, data: bytes, filename: str) -> str:
        if self.fail:
            raise UpstreamFailure("File upload failed")
        self.uploads.append((filename, data))
        return f"https://files.example/{len(self.uploads)}/{filename}"


class FakeNotifier:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent = []

    def send_feedback_notification(self, admin_email: str, summary: dict) -> None:
        if self.fail:
            raise OSError("smtp down")
        self.sent.append((admin_email, summary))


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        jwt_secret="test-secret-0123456789abcdef0123456789abcdef",
        bcrypt_rounds=4,
        frontend_url="https://vault.example",
    )


@pytest.fixture
def database():
    db = mongomock.MongoClient()[f"vault_{uuid.uuid4().hex}"]
    ensure_indexes(db)
    return db


@pytest.fixture
def object_store():
    return FakeObjectStore()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def identities(database, settings):
    return IdentityStore(database, settings)


@pytest.fixture
def poems(database, settings, object_store):
    return VaultEntryStore(database, settings, object_store)


@pytest.fixture
def gate(database):
    return AccessGate(database)


@pytest.fixture
def feedback_store(database, notifier):
    return FeedbackStore(database, notifier)


@pytest.fixture
def analytics(database):
    return AnalyticsAggregator(database)


@pytest.fixture
def alice(identities):
    result = identities.register("alice", "a@x.com", "s3cret-pass")
    return identities.resolve(result["token"])


@pytest.fixture
def bob(identities):
    result = identities.register("bob", "b@x.com", "an0ther-pass")
    return identities.resolve(result["token"])
