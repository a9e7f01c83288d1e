from __future__ import annotations

from dotenv import load_dotenv
from flask import Flask
from flask_cors import CORS

from ats.cache_layer import configure_cache
from ats.config import get_config
from ats.db import create_schema, init_engine
from ats.middlewares.error_handler import init_error_handlers
from ats.middlewares.logging import init_request_logging
from ats.middlewares.rate_limit import init_rate_limiting
from ats.middlewares.request_id import init_request_id
from ats.middlewares.security_headers import init_security_headers
from ats.routes.api import api_bp
from ats.routes.applications import applications_bp
from ats.routes.assessments import assessments_bp
from ats.routes.auth import auth_bp
from ats.routes.core import core_bp
from ats.routes.jobs import jobs_bp
from ats.routes.reports import reports_bp
from ats.utils.logging import setup_logging


def create_app() -> Flask:
    load_dotenv()

    cfg = get_config()
    setup_logging(cfg.LOG_LEVEL)

    app = Flask(__name__)
    app.config["CFG"] = cfg
    app.json.sort_keys = False

    CORS(
        app,
        origins=cfg.CORS_ORIGINS,
        supports_credentials=cfg.CORS_ALLOW_CREDENTIALS,
        allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
        expose_headers=["X-Request-ID"],
        methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        max_age=3600,
    )

    init_request_id(app)
    init_security_headers(app)
    init_rate_limiting(app)
    init_request_logging(app)
    init_error_handlers(app)

    init_engine(cfg.DATABASE_URL)
    create_schema()
    configure_cache(cfg)

    app.register_blueprint(core_bp)
    app.register_blueprint(api_bp)
    app.register_blueprint(auth_bp, url_prefix="/api/v1/auth")
    app.register_blueprint(jobs_bp, url_prefix="/api/v1")
    app.register_blueprint(applications_bp, url_prefix="/api/v1")
    app.register_blueprint(assessments_bp, url_prefix="/api/v1")
    app.register_blueprint(reports_bp, url_prefix="/api/v1/reports")

    return app
