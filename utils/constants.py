"""
Application-wide constants.
Centralizes magic numbers and table names.
"""

# Tables
BOOKINGS_TABLE = "bookings"
PAYMENT_REQUESTS_TABLE = "payment_requests"
CHATS_TABLE = "chats"
MESSAGES_TABLE = "messages"
NOTIFICATIONS_TABLE = "notifications"
PROFILES_TABLE = "profiles"
COMPANION_PROFILES_TABLE = "companion_profiles"
BLOCKS_TABLE = "blocks"
COMPLAINTS_TABLE = "complaints"
ADMIN_LOGS_TABLE = "admin_logs"

# Postgres error code for unique_violation
UNIQUE_VIOLATION_CODE = "23505"

# Validation limits
MIN_BOOKING_DURATION_HOURS = 1
MAX_NOTES_LENGTH = 1000
MAX_ACTIVITY_LENGTH = 100
MAX_REPORT_LENGTH = 2000

# Query limits
BOOKINGS_QUERY_LIMIT = 200
NOTIFICATIONS_QUERY_LIMIT = 50
