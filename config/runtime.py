"""Attendance knobs shared by every environment (read from the process env)."""

import os


def _flag(name: str, default: str) -> bool:
    return bool(int(os.getenv(name, default)))


TIMEZONE = os.getenv("TIMEZONE", "UTC")

# Cosine similarity in [-1, 1]; a capture must score at least this much.
SIMILARITY_THRESHOLD = float(os.getenv("SIMILARITY_THRESHOLD", "0.65"))
FEATURE_DIMENSION = int(os.getenv("FEATURE_DIMENSION", "128"))

DEFAULT_RADIUS_METERS = float(os.getenv("DEFAULT_RADIUS_METERS", "150"))
DEFAULT_WINDOW_HOURS = int(os.getenv("DEFAULT_WINDOW_HOURS", "24"))

SWEEP_INTERVAL_SECONDS = int(os.getenv("SWEEP_INTERVAL_SECONDS", "60"))
ABSENCE_BATCH_SIZE = int(os.getenv("ABSENCE_BATCH_SIZE", "50"))

REQUIRE_FACE_VERIFICATION = _flag("REQUIRE_FACE_VERIFICATION", "1")
