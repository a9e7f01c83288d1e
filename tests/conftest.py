import sys
from pathlib import Path

import pytest


BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))


@pytest.fixture()
def app_client(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    db_path = tmp_path / "test.db"

    monkeypatch.setenv("ENV", "testing")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{db_path.as_posix()}")
    monkeypatch.setenv("JWT_SECRET", "test-secret")
    monkeypatch.setenv("LOG_LEVEL", "WARNING")

    # Keep a developer's .env or shell config out of the tests.
    monkeypatch.delenv("RESUME_PARSER_URL", raising=False)
    monkeypatch.delenv("CORS_ORIGINS", raising=False)
    monkeypatch.delenv("APP_ENV", raising=False)

    from ats import create_app
    from ats.cache_layer import cache_clear
    from ats.middlewares.rate_limit import limiter

    cache_clear()
    limiter.reset()

    app = create_app()
    app.testing = True

    with app.test_client() as client:
        yield app, client
