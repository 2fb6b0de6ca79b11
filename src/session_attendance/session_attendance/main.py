from __future__ import annotations

import atexit
import importlib
import json
import logging
import os
from pathlib import Path
from typing import Optional

import click
from dotenv import load_dotenv
from flask import Flask

from config import get_settings_module

from .attendance.controller import register as register_attendance
from .common.web import register_error_handlers
from .container import Container, build_container
from .database.bootstrap import apply_schema, apply_seed_sql, ensure_demo_users, list_tables
from .subjects.controller import register as register_subjects
from .windows.controller import register as register_windows

logger = logging.getLogger(__name__)

REPO_ROOT = Path(__file__).resolve().parents[3]


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    # APScheduler logs every job execution at INFO.
    logging.getLogger("apscheduler").setLevel(logging.WARNING)


def _bootstrap_database(settings, db_config: dict) -> None:
    if bool(getattr(settings, "AUTO_INIT_DB", False)):
        apply_schema(db_config, schema_path=REPO_ROOT / "database" / "schema.sql")
        logger.info("Schema ready (tables=%d)", len(list_tables(db_config)))
    if bool(getattr(settings, "AUTO_SEED_DB", False)):
        apply_seed_sql(db_config, seed_path=REPO_ROOT / "database" / "seed.sql")
        ensure_demo_users(db_config)
        logger.info("Demo seed ready")


def _should_start_sweeper(app: Flask, settings) -> bool:
    if not bool(getattr(settings, "SWEEPER_ENABLED", False)) or app.testing:
        return False
    # Under the debug reloader only the child process serves requests.
    return not app.debug or os.environ.get("WERKZEUG_RUN_MAIN") == "true"


def create_app(container: Optional[Container] = None, *, settings_module: Optional[str] = None) -> Flask:
    load_dotenv(override=False)
    app = Flask(__name__)

    settings_module = settings_module or get_settings_module()
    settings = importlib.import_module(settings_module)
    _configure_logging(getattr(settings, "LOG_LEVEL", "INFO"))

    app.secret_key = getattr(settings, "SECRET_KEY")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.config["TESTING"] = bool(getattr(settings, "TESTING", False))
    options = {k: getattr(settings, k) for k in dir(settings) if k.isupper()}

    if container is None:
        db_config = getattr(settings, "DB_CONFIG")
        logger.info(
            "settings=%s db=%s@%s:%s/%s",
            settings_module,
            db_config.get("user"), db_config.get("host"), db_config.get("port", 3306), db_config.get("database"),
        )
        _bootstrap_database(settings, db_config)
        container = build_container(db_config=db_config, settings=options)

    app.extensions["session_attendance"] = container

    register_error_handlers(app)
    register_subjects(app, container)
    register_windows(app, container)
    register_attendance(app, container)

    @app.cli.command("sweep-once")
    def sweep_once():
        """Reconcile expired windows once and print the summary."""
        summary = container.sweeper.run_once()
        click.echo(json.dumps(summary.to_dict(), indent=2))

    if _should_start_sweeper(app, settings):
        container.sweeper_task.start()
        atexit.register(container.sweeper_task.stop, wait=False)

    return app
