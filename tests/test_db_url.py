from ats import db as dbmod
from ats.db import _should_disable_prepared_statements, normalize_database_url


def test_normalize_database_url_sets_psycopg_driver():
    assert normalize_database_url("postgres://u:p@h:5432/db") == "postgresql+psycopg://u:p@h:5432/db"
    assert normalize_database_url("postgresql://u:p@h:5432/db") == "postgresql+psycopg://u:p@h:5432/db"
    assert normalize_database_url("postgresql+psycopg2://u:p@h/db") == "postgresql+psycopg://u:p@h/db"


def test_normalize_database_url_keeps_other_urls():
    assert normalize_database_url("postgresql+psycopg://u:p@h/db") == "postgresql+psycopg://u:p@h/db"
    assert normalize_database_url("  sqlite:///./ats.db ") == "sqlite:///./ats.db"
    assert normalize_database_url("") == ""


def test_should_disable_prepared_statements_for_pooler_port(monkeypatch):
    monkeypatch.delenv("DB_DISABLE_PREPARED_STATEMENTS", raising=False)
    assert _should_disable_prepared_statements("postgresql+psycopg://u:p@pooler.example.com:6543/db") is True
    assert _should_disable_prepared_statements("postgresql+psycopg://u:p@db.example.com:5432/db") is False
    assert _should_disable_prepared_statements("sqlite:///./ats.db") is False


def test_should_disable_prepared_statements_when_forced(monkeypatch):
    monkeypatch.setenv("DB_DISABLE_PREPARED_STATEMENTS", "true")
    assert _should_disable_prepared_statements("postgresql+psycopg://u:p@db.example.com:5432/db") is True


def _capture_engine_kwargs(monkeypatch) -> dict:
    monkeypatch.delenv("DB_SSLMODE", raising=False)
    monkeypatch.delenv("DB_DISABLE_PREPARED_STATEMENTS", raising=False)

    captured: dict = {}

    def fake_create_engine(url, **kwargs):
        captured["url"] = url
        captured.update(kwargs)

        class DummyEngine:
            pass

        return DummyEngine()

    monkeypatch.setattr(dbmod, "create_engine", fake_create_engine)
    monkeypatch.setattr(dbmod.SessionLocal, "configure", lambda **_kwargs: None)
    monkeypatch.setattr(dbmod, "engine", None)
    return captured


def test_init_engine_sets_prepare_threshold_for_pooler(monkeypatch):
    captured = _capture_engine_kwargs(monkeypatch)
    dbmod.init_engine("postgres://u:p@pooler.example.com:6543/db")

    assert captured["url"] == "postgresql+psycopg://u:p@pooler.example.com:6543/db"
    assert "prepare_threshold" in captured["connect_args"]
    assert captured["connect_args"]["prepare_threshold"] is None
    assert captured["pool_size"] == 5


def test_init_engine_does_not_set_prepare_threshold_for_direct_host(monkeypatch):
    captured = _capture_engine_kwargs(monkeypatch)
    dbmod.init_engine("postgresql+psycopg://u:p@db.example.com:5432/db")
    assert "prepare_threshold" not in captured["connect_args"]


def test_init_engine_sqlite_allows_worker_threads(monkeypatch):
    captured = _capture_engine_kwargs(monkeypatch)
    dbmod.init_engine("sqlite:///./ats.db")
    assert captured["connect_args"]["check_same_thread"] is False
    assert "pool_size" not in captured
