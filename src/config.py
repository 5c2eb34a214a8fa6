import os

from dotenv import load_dotenv

load_dotenv()

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

DB_CONNECT_MAX_RETRIES = int(os.getenv("DB_CONNECT_MAX_RETRIES", "30"))
DB_CONNECT_RETRY_DELAY = float(os.getenv("DB_CONNECT_RETRY_DELAY", "1.5"))

# Compensating releases are retried this many times before being parked
# in the reconciliation log.
COMPENSATION_MAX_ATTEMPTS = int(os.getenv("COMPENSATION_MAX_ATTEMPTS", "5"))
COMPENSATION_RETRY_DELAY = float(os.getenv("COMPENSATION_RETRY_DELAY", "0.2"))

DEFAULT_PAGE_SIZE = int(os.getenv("DEFAULT_PAGE_SIZE", "10"))
MAX_PAGE_SIZE = int(os.getenv("MAX_PAGE_SIZE", "100"))

# Largest value the INTEGER columns accept on every supported engine.
MAX_INTEGER = 2**31 - 1

API_HOST = os.getenv("API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("API_PORT", "8000"))
