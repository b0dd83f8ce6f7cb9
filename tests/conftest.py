import sys
from pathlib import Path as _Path
sys.path.insert(0, str(_Path(__file__).resolve().parents[1] / "src"))

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from bookstore.app import create_app
from bookstore.auth.tokens import TokenConfig, TokenService
from bookstore.auth.users import SQLiteUserStore
from bookstore.config import Settings

TEST_KEY = "ThisIsATestSecretKeyForJwtTokenGenerationThatIsLongEnough"


@pytest.fixture()
def token_config() -> TokenConfig:
    return TokenConfig(key=TEST_KEY, issuer="TestIssuer", audience="TestAudience", lifetime_seconds=3600)


@pytest.fixture()
def tokens(token_config) -> TokenService:
    return TokenService(token_config)


@pytest.fixture()
def store(tmp_path: Path) -> SQLiteUserStore:
    """Empty users table in a throwaway SQLite file."""
    s = SQLiteUserStore(str(tmp_path / "data" / "users.db"))
    s.ensure_schema()
    return s


@pytest.fixture()
def settings(token_config, tmp_path: Path) -> Settings:
    # "test" environment: cookies are not Secure so TestClient sends them back over http.
    return Settings(
        token=token_config,
        environment="test",
        db_path=str(tmp_path / "data" / "users.db"),
    )


@pytest.fixture()
def app(settings, store, tokens):
    return create_app(settings=settings, store=store, tokens=tokens)


@pytest.fixture()
def client(app) -> TestClient:
    return TestClient(app)
