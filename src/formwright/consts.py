"""Constants for Formwright application"""

# ==================== File Paths ====================
DATABASE_PATH = "data/formwright.db"
LOG_FILE_DEFAULT = "data/formwright.log"

# ==================== Editor ====================
AUTOSAVE_DELAY = 2.0  # seconds of quiet before an auto-save
TEXT_PARSE_DELAY = 0.5  # seconds of quiet before the text builder re-parses
DEFAULT_FORM_TITLE = "Untitled Form"
DEFAULT_MAX_RATING = 5

# ==================== Form Defaults ====================
DEFAULT_THANK_YOU_MESSAGE = "Thank you for your submission!"

# ==================== Limits ====================
MAX_TITLE_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 500

# ==================== Rate Limiting ====================
RATE_LIMIT_MAX_REQUESTS = 10  # submissions per window per client
RATE_LIMIT_WINDOW = 60 * 60  # 1 hour

# ==================== Validation Patterns ====================
DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"
PHONE_PATTERN = r"^[\d\s+\-()]+$"
NUMBER_PATTERN = r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$"

# ==================== API ====================
API_KEY_HEADER = "X-API-Key"
PAGE_SIZE = 50

# ==================== Database Configuration ====================
DB_MAX_CONNECTIONS = 20
DB_STALE_TIMEOUT = 300  # 5 minutes
DB_JOURNAL_MODE = "wal"
DB_SYNCHRONOUS = "NORMAL"
DB_BUSY_TIMEOUT = 5000  # 5 seconds
DB_CACHE_SIZE = -64 * 1000  # 64MB

# ==================== Database Pragmas ====================
DB_PRAGMAS = {
    "journal_mode": DB_JOURNAL_MODE,
    "synchronous": DB_SYNCHRONOUS,
    "busy_timeout": DB_BUSY_TIMEOUT,
    "foreign_keys": 1,
    "cache_size": DB_CACHE_SIZE,
}
