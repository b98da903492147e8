"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

DEFAULT_ATTENDANCE_WINDOW_MINUTES = 15
DEFAULT_PENALTY_THRESHOLD = 3
DEFAULT_ALLOW_SELF_ATTENDANCE = True

MIN_ATTENDANCE_WINDOW_MINUTES = 5
MIN_PENALTY_THRESHOLD = 1

DEFAULT_RECONCILE_MAX_ATTEMPTS = 3
DEFAULT_EVENT_POLL_SECONDS = 1.0
DEFAULT_EVENT_BATCH_SIZE = 100
DEFAULT_HISTORY_LIMIT = 200
