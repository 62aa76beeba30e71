"""Centralized constants for the bot launcher."""

# Update server
DEFAULT_SERVER_URL = "http://localhost:3000"
CHECK_UPDATE_PATH = "/api/bot/check-update"
DOWNLOAD_PATH = "/api/bot/download"
VERSION_HEADER = "x-bot-version"
HASH_HEADER = "x-file-hash"
UNKNOWN_VERSION = "unknown"

# Timeouts (seconds)
CHECK_UPDATE_TIMEOUT_SECONDS = 5.0
DOWNLOAD_TIMEOUT_SECONDS = 30.0

# Cache layout
DEFAULT_CACHE_DIR = ".bot-cache"
ARTIFACT_FILENAME = "bot.py"
METADATA_FILENAME = "cache.json"
LOCK_FILENAME = "launcher.lock"

# Heap sizing
HEAP_RAM_FRACTION = 0.85
HEAP_OPTIMIZATION_THRESHOLD_MB = 1000

# Process exit codes
EXIT_OK = 0
EXIT_FAILURE = 1
