MAX_BOOKING_HOURS = 24
MAX_TRANSACTION_ATTEMPTS = 5
MAX_TRANSITION_ATTEMPTS = 3
RETRY_BASE_DELAY_SECONDS = 0.05
DEFAULT_REFERENCE_TIMEZONE = "UTC"
