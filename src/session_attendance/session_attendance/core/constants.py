"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
Settings modules under ``config/`` override most of them per environment.
"""

DEFAULT_HISTORY_LIMIT = 30
DEFAULT_WINDOW_LIST_LIMIT = 50
DEFAULT_ATTENDANCE_LIST_LIMIT = 100

DEFAULT_TIMEZONE = "UTC"
DEFAULT_WINDOW_HOURS = 24
# Upper bound for duration_minutes and late_after_minutes (one year).
MAX_WINDOW_MINUTES = 366 * 24 * 60

DEFAULT_SIMILARITY_THRESHOLD = 0.65
DEFAULT_FEATURE_DIMENSION = 128

DEFAULT_RADIUS_METERS = 150.0
EARTH_RADIUS_METERS = 6_371_000.0

DEFAULT_SWEEP_INTERVAL_SECONDS = 60
DEFAULT_ABSENCE_BATCH_SIZE = 50

WINDOW_CODE_BYTES = 4
