"""
Pytest configuration for TuneForge tests
Environment variables are set here, before any tuneforge import reads them.
"""
import os
import sys
from pathlib import Path

import pytest
import pytest_asyncio
from jose import jwt

TEST_SESSION_SECRET = "test-session-secret"
TEST_WEBHOOK_SECRET = "test-webhook-secret"
TEST_ADMIN_SECRET = "test-admin-secret"

# Make the src layout importable without an install
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

os.environ["ENV"] = "testing"
os.environ["DEBUG"] = "false"
os.environ["DB_URL"] = "sqlite+aiosqlite:///./tuneforge-test.db"
os.environ["PROVIDER_TRAIN_URL"] = "https://provider.test/train"
os.environ["PROVIDER_CANCEL_URL"] = "https://provider.test/cancel"
os.environ["PROVIDER_KEY"] = "provider-key"
os.environ["PROVIDER_SECRET"] = "provider-secret"
os.environ["R2_ACCOUNT_ID"] = "test-account"
os.environ["R2_ACCESS_KEY_ID"] = "test-access-key"
os.environ["R2_SECRET_ACCESS_KEY"] = "test-secret-key"
os.environ["R2_BUCKET"] = "checkpoints"
os.environ["SECURITY_SESSION_SECRET"] = TEST_SESSION_SECRET
os.environ["SECURITY_WEBHOOK_SECRET"] = TEST_WEBHOOK_SECRET
os.environ["SECURITY_ADMIN_SECRET"] = TEST_ADMIN_SECRET
os.environ.pop("NOTIFY_API_KEY", None)

from tuneforge.config import DatabaseSettings, SecuritySettings, Settings  # noqa: E402
from tuneforge.db import close_db, create_engine, create_session_maker, init_db  # noqa: E402


# Configure pytest
def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")


# Shared fixtures
@pytest.fixture
def database_url(tmp_path):
    """SQLite database file private to one test"""
    return f"sqlite+aiosqlite:///{tmp_path / 'tuneforge.db'}"


@pytest.fixture
def settings(database_url):
    """Application settings for tests, with a small body limit"""
    return Settings(
        env="testing",
        debug=False,
        database=DatabaseSettings(url=database_url),
        security=SecuritySettings(max_body_bytes=4096),
    )


@pytest_asyncio.fixture
async def session_maker(settings):
    """Session factory over a freshly created schema"""
    engine = create_engine(settings.database)
    await init_db(engine)
    yield create_session_maker(engine)
    await close_db(engine)


@pytest.fixture
def make_token():
    """Build session tokens the way the identity provider signs them"""
    def _make(user_id: str, secret: str = TEST_SESSION_SECRET) -> str:
        return jwt.encode({"sub": user_id}, secret, algorithm="HS256")
    return _make


@pytest.fixture
def auth_headers(make_token):
    """Authorization headers for a session user"""
    def _headers(user_id: str) -> dict:
        return {"Authorization": f"Bearer {make_token(user_id)}"}
    return _headers
