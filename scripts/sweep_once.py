"""Reconcile expired windows once, outside the web process (e.g. from cron)."""

from __future__ import annotations

import importlib
import json
import logging
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from config import get_settings_module

from src.session_attendance.session_attendance.container import build_container


def main() -> None:
    settings = importlib.import_module(get_settings_module())
    logging.basicConfig(level=getattr(settings, "LOG_LEVEL", "INFO"))

    options = {k: getattr(settings, k) for k in dir(settings) if k.isupper()}
    container = build_container(db_config=dict(settings.DB_CONFIG), settings=options)

    summary = container.sweeper.run_once()
    print(json.dumps(summary.to_dict(), indent=2))
    if summary.windows_failed:
        raise SystemExit(1)


if __name__ == "__main__":
    main()
