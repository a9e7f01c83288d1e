from __future__ import annotations

import os
from dataclasses import dataclass


def _csv(value: str) -> list[str]:
    items: list[str] = []
    for part in (value or "").split(","):
        item = part.strip()
        if item:
            items.append(item)
    return items


def _env_str(name: str, default: str) -> str:
    return str(os.getenv(name, default) or default)


def _env_bool(name: str, default: bool = False) -> bool:
    raw = str(os.getenv(name, "") or "").strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    try:
        return int(str(os.getenv(name, "") or "").strip() or default)
    except ValueError:
        return default


@dataclass(frozen=True)
class BaseConfig:
    ENV: str = "development"
    DEBUG: bool = False
    TESTING: bool = False

    APP_VERSION: str = "dev"
    TIMEZONE_DISPLAY: str = "UTC"

    DATABASE_URL: str = "sqlite:///./ats.db"

    JWT_SECRET: str = "dev-secret"
    JWT_EXP_MINUTES: int = 720

    CORS_ORIGINS: list[str] | str = (
        "http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173,http://127.0.0.1:5173"
    )
    CORS_ALLOW_CREDENTIALS: bool = False

    LOG_LEVEL: str = "INFO"

    RATE_LIMIT_GLOBAL: str = "1200 per minute"
    RATE_LIMIT_DEFAULT: str = "300 per minute"
    RATE_LIMIT_LOGIN: str = "30 per minute"

    TRUST_PROXY_HEADERS: bool = True

    TEST_WINDOW_GRACE_MINUTES: int = 5
    BULK_MARKS_MAX_WORKERS: int = 4

    RESUME_PARSER_URL: str = ""
    RESUME_PARSER_API_KEY: str = ""
    RESUME_PARSER_WORKSPACE: str = ""
    RESUME_PARSER_TIMEOUT_SECONDS: int = 30

    CACHE_TTL_SECONDS: int = 30

    def __post_init__(self) -> None:
        for name in (
            "APP_VERSION",
            "TIMEZONE_DISPLAY",
            "DATABASE_URL",
            "JWT_SECRET",
            "RATE_LIMIT_GLOBAL",
            "RATE_LIMIT_DEFAULT",
            "RATE_LIMIT_LOGIN",
            "RESUME_PARSER_URL",
            "RESUME_PARSER_API_KEY",
            "RESUME_PARSER_WORKSPACE",
        ):
            object.__setattr__(self, name, _env_str(name, getattr(self, name)).strip())

        object.__setattr__(self, "JWT_EXP_MINUTES", _env_int("JWT_EXP_MINUTES", self.JWT_EXP_MINUTES))

        cors_raw = os.getenv("CORS_ORIGINS")
        if cors_raw is not None:
            cors_raw = str(cors_raw or "").strip()
            if cors_raw == "*":
                object.__setattr__(self, "CORS_ORIGINS", "*")
            else:
                object.__setattr__(self, "CORS_ORIGINS", _csv(cors_raw))
        else:
            object.__setattr__(self, "CORS_ORIGINS", _csv(str(self.CORS_ORIGINS)))

        object.__setattr__(
            self, "CORS_ALLOW_CREDENTIALS", _env_bool("CORS_ALLOW_CREDENTIALS", self.CORS_ALLOW_CREDENTIALS)
        )

        object.__setattr__(self, "LOG_LEVEL", _env_str("LOG_LEVEL", self.LOG_LEVEL).upper())
        object.__setattr__(self, "TRUST_PROXY_HEADERS", _env_bool("TRUST_PROXY_HEADERS", self.TRUST_PROXY_HEADERS))

        object.__setattr__(
            self,
            "TEST_WINDOW_GRACE_MINUTES",
            max(0, _env_int("TEST_WINDOW_GRACE_MINUTES", self.TEST_WINDOW_GRACE_MINUTES)),
        )
        object.__setattr__(
            self, "BULK_MARKS_MAX_WORKERS", max(1, _env_int("BULK_MARKS_MAX_WORKERS", self.BULK_MARKS_MAX_WORKERS))
        )
        object.__setattr__(
            self,
            "RESUME_PARSER_TIMEOUT_SECONDS",
            max(1, _env_int("RESUME_PARSER_TIMEOUT_SECONDS", self.RESUME_PARSER_TIMEOUT_SECONDS)),
        )
        object.__setattr__(self, "CACHE_TTL_SECONDS", max(1, _env_int("CACHE_TTL_SECONDS", self.CACHE_TTL_SECONDS)))

    @property
    def IS_PRODUCTION(self) -> bool:
        return str(self.ENV or "").lower() == "production"

    def validate(self) -> None:
        if not str(self.DATABASE_URL or "").strip():
            raise RuntimeError("DATABASE_URL must be set")
        if self.IS_PRODUCTION and str(self.JWT_SECRET or "").strip() in {"", "dev-secret"}:
            raise RuntimeError("JWT_SECRET must be set in production")
        if self.IS_PRODUCTION and str(self.DATABASE_URL).startswith("sqlite"):
            raise RuntimeError("SQLite is not supported in production; set DATABASE_URL to Postgres")
        if self.IS_PRODUCTION and self.CORS_ORIGINS == "*":
            raise RuntimeError("CORS_ORIGINS='*' is not allowed in production")


@dataclass(frozen=True)
class DevelopmentConfig(BaseConfig):
    ENV: str = "development"
    DEBUG: bool = True


@dataclass(frozen=True)
class ProductionConfig(BaseConfig):
    ENV: str = "production"
    DEBUG: bool = False


@dataclass(frozen=True)
class TestingConfig(BaseConfig):
    ENV: str = "testing"
    TESTING: bool = True
    JWT_SECRET: str = "test-secret"


def get_config() -> BaseConfig:
    env = str(os.getenv("ENV") or os.getenv("APP_ENV") or "development").strip().lower()
    if env in {"prod", "production"}:
        cfg: BaseConfig = ProductionConfig()
    elif env in {"test", "testing"}:
        cfg = TestingConfig()
    else:
        cfg = DevelopmentConfig()

    cfg.validate()
    return cfg
