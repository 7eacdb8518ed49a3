from .health import health_bp
from .venues import venues_bp
from .courts import courts_bp
from .booking import booking_bp
from .payments import payments_bp
from .wallet import wallet_bp
from .stripe_webhook import webhook_bp
from .cron import cron_bp
from .matches import matches_bp
from .admin import admin_bp
