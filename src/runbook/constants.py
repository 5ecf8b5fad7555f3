"""Constants for the runbook CLI."""

RUNBOOK_DIR_NAME = ".runbook"
SESSIONS_DIR_NAME = "sessions"
CONFIG_FILE = "config.toml"

# Session directory layout
SESSION_FILE = "session.json"
SESSION_SOURCE_FILE = "runbook.md"
SESSION_LOCK_FILE = "session.lock"

STALE_LOCK_SECONDS = 3600  # 1 hour
MAX_LOCK_RETRIES = 3
# An unreadable lock younger than this may belong to a holder still publishing it
UNREADABLE_LOCK_GRACE_SECONDS = 5

NO_CODE_CHANGE_MARKER = "[NO-CODE-CHANGE]"
