from __future__ import annotations

import importlib
import logging
from typing import Optional

from dotenv import load_dotenv
from flask import Flask

from config import get_settings_module

from .common.http import register_error_handlers
from .common.logging_setup import configure_logging
from .container import Container, build_container
from .database.bootstrap import apply_schema, list_tables
from .groups.controller import register as register_groups
from .sessions.controller import register as register_sessions
from .stats.controller import register as register_stats

logger = logging.getLogger(__name__)


def create_app(container: Optional[Container] = None) -> Flask:
    load_dotenv(override=False)
    app = Flask(__name__)

    settings_module = get_settings_module()
    settings = importlib.import_module(settings_module)
    app.secret_key = getattr(settings, "SECRET_KEY")
    db_config = getattr(settings, "DB_CONFIG")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.config["TESTING"] = bool(getattr(settings, "TESTING", False))

    configure_logging(getattr(settings, "LOG_LEVEL", "INFO"), getattr(settings, "LOG_DIR", None))
    logger.info(
        "settings=%s db=%s@%s:%s/%s",
        settings_module,
        db_config.get("user"),
        db_config.get("host"),
        db_config.get("port", 3306),
        db_config.get("database"),
    )

    if container is None:
        if bool(getattr(settings, "AUTO_INIT_DB", False)):
            apply_schema(db_config)
            logger.info("schema ready (tables=%d)", len(list_tables(db_config)))

        container = build_container(
            db_config=db_config,
            reconcile_max_attempts=int(getattr(settings, "RECONCILE_MAX_ATTEMPTS", 3)),
            event_poll_seconds=float(getattr(settings, "EVENT_POLL_SECONDS", 1.0)),
            identity_header=getattr(settings, "IDENTITY_HEADER", "X-Profile-Id"),
        )

    app.extensions["rollcall"] = container
    register_error_handlers(app)
    register_groups(app, container)
    register_sessions(app, container)
    register_stats(app, container)

    return app
