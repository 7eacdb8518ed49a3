import os
from decimal import Decimal

BASE_DIR = os.path.abspath(os.path.dirname(__file__))

class Config:
    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")

    # SQLite file next to the app unless DATABASE_URL points at PostgreSQL
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "courtslot.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Session cookie issued by the auth service
    AUTH_COOKIE_NAME = os.getenv("AUTH_COOKIE_NAME", "courtslot_session")
    SESSION_LIFETIME_SECONDS = 8 * 60 * 60
    IDLE_TIMEOUT_SECONDS = 20 * 60

    # Stripe
    STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")
    STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET")
    STRIPE_SUCCESS_URL = os.getenv("STRIPE_SUCCESS_URL")
    STRIPE_CANCEL_URL = os.getenv("STRIPE_CANCEL_URL")
    CURRENCY = os.getenv("CURRENCY", "EUR")

    # Booking rules
    SPLIT_SERVICE_FEE = Decimal(os.getenv("SPLIT_SERVICE_FEE", "0.25"))
    CANCEL_CUTOFF_HOURS = int(os.getenv("CANCEL_CUTOFF_HOURS", "12"))
    # booking dates and times are wall-clock times at the venue
    VENUE_TIMEZONE = os.getenv("VENUE_TIMEZONE", "UTC")

    # Rain check
    RAIN_CHECK_WINDOW_HOURS = int(os.getenv("RAIN_CHECK_WINDOW_HOURS", "24"))
    CRON_SECRET = os.getenv("CRON_SECRET")
    OPENWEATHERMAP_API_KEY = os.getenv("OPENWEATHERMAP_API_KEY")
    WEATHER_TIMEOUT_SECONDS = float(os.getenv("WEATHER_TIMEOUT_SECONDS", "10"))

    # Email (SMTP)
    SMTP_HOST = os.getenv("SMTP_HOST")
    SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
    SMTP_USERNAME = os.getenv("SMTP_USERNAME")
    SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")
    SMTP_FROM_EMAIL = os.getenv("SMTP_FROM_EMAIL")
    SMTP_USE_TLS = os.getenv("SMTP_USE_TLS", "true").lower() == "true"

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Create PLAYER/ADMIN/SUPER_ADMIN on startup (needs migrated tables)
    SEED_DEFAULT_ROLES = os.getenv("SEED_DEFAULT_ROLES", "true").lower() == "true"

    # Basic app settings
    DEBUG = False
