# settings.py
import os


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///car_rental.db")
SQL_ECHO = _flag("SQL_ECHO", "false")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Inventory rules
MIN_PRICE_PER_DAY = int(os.getenv("MIN_PRICE_PER_DAY", "100000"))
MIN_CAR_YEAR = 1990

# Sessions
SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "sid")
SESSION_COOKIE_SECURE = _flag("SESSION_COOKIE_SECURE", "false")
SESSION_MAX_AGE = int(os.getenv("SESSION_MAX_AGE", str(7 * 24 * 3600)))  # seconds

# Seed data
ADMIN_USERNAME = os.getenv("ADMIN_USERNAME", "admin")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "admin123")
SEED_SAMPLE_DATA = _flag("SEED_SAMPLE_DATA", "true")

# Reject status jumps that skip the pending -> confirmed -> renting -> returned order
STRICT_BOOKING_TRANSITIONS = _flag("STRICT_BOOKING_TRANSITIONS", "false")

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

PORT = int(os.getenv("PORT", "8000"))
