"""Centralized configuration for PawnLedger.

This module contains the business rule constants, default values and
storage formats used throughout the ledger. Values that may be tuned at
runtime are also readable from the ``settings`` table, with these
constants as the fallback.
"""

# =============================================================================
# STORAGE
# =============================================================================

# Default sqlite database file
DEFAULT_DB_NAME = "pawn_ledger.db"

# Seconds to wait on a locked database before giving up
DB_LOCK_TIMEOUT = 5.0

# Timestamp format for storage
DATETIME_FORMAT_STORAGE = "%Y-%m-%d %H:%M:%S"

# Date format for storage and daily buckets (ISO 8601)
DATE_FORMAT_STORAGE = "%Y-%m-%d"

# =============================================================================
# INTEREST
# =============================================================================

# Fixed month length used to derive the daily rate from the monthly rate
DAYS_PER_MONTH = 30

# Money is held to two decimals; differences below this are treated as zero
MONEY_EPSILON = 0.01

# =============================================================================
# RECONCILIATION
# =============================================================================

# Declared interest may differ from the projection by this share of it...
INTEREST_DEVIATION_RATIO = 0.10

# ...or by this absolute amount, whichever is larger, before being flagged
INTEREST_DEVIATION_MIN = 100

# Settings table keys overriding the two values above
SETTING_DEVIATION_RATIO = "interest_deviation_ratio"
SETTING_DEVIATION_MIN = "interest_deviation_min"

# =============================================================================
# BUSINESS RULES
# =============================================================================

ITEM_CATEGORIES = ("gold", "silver")

CUSTOMER_RELATIONS = ("father", "mother", "wife", "husband", "son", "daughter", "other")

STATUS_ACTIVE = "Active"
STATUS_SETTLED = "Settled"

# =============================================================================
# LISTINGS & INSIGHTS
# =============================================================================

DEFAULT_PAGE_SIZE = 10

SORTABLE_COLUMNS = ("created_at", "updated_at")

# Window of the daily aggregates chart
DEFAULT_DAILY_WINDOW_DAYS = 30

# Months covered by the monthly trends
MONTHLY_TRENDS_MONTHS = 6

# Number of payments in the recent activity feed
RECENT_ACTIVITY_LIMIT = 10

# =============================================================================
# LOGGING
# =============================================================================

DEFAULT_LOG_LEVEL = "INFO"
