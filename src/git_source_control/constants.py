"""Constants for git-source-control."""

# Repository marker directory
GIT_DIR = ".git"

# Settings file looked up at the repository root
SETTINGS_FILE = ".git-source-control.yaml"

# Environment overrides
ENV_BINARY = "GIT_SOURCE_CONTROL_BINARY"
ENV_LOCKING = "GIT_SOURCE_CONTROL_LOCKING"

# Command line limits: split file lists into batches of this size
MAX_FILES_PER_BATCH = 50

DEFAULT_BINARY = "git"
DEFAULT_REMOTE = "origin"

# Number of log entries fetched per file
HISTORY_MAX_COUNT = 100

# Worker pool size for queued commands
DEFAULT_POOL_SIZE = 4

# Poll interval of the synchronous execution loop (seconds)
SYNC_POLL_INTERVAL = 0.01

STASH_MESSAGE = "Stashed by git-source-control before pull --rebase"

# Errors about files outside the repository are noise for mixed selections
OUTSIDE_REPOSITORY_FILTER = "is outside repository"

PROVIDER_NAME = "Git"
