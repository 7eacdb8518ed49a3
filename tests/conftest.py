from datetime import date, timedelta
from decimal import Decimal

import pytest

from app import create_app
from config import Config
from models import db
from models.court import Court
from models.payment import Payment
from models.user import User, Role
from models.venue import Venue
from security.session import create_session
from utils.roles import ensure_default_roles


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SEED_DEFAULT_ROLES = False
    LOG_LEVEL = "WARNING"

    STRIPE_SECRET_KEY = None
    STRIPE_WEBHOOK_SECRET = "whsec_test"
    STRIPE_SUCCESS_URL = None
    STRIPE_CANCEL_URL = None

    CRON_SECRET = "cron-secret"
    OPENWEATHERMAP_API_KEY = "test-key"
    SMTP_HOST = None
    CANCEL_CUTOFF_HOURS = 12
    VENUE_TIMEZONE = "UTC"
    RAIN_CHECK_WINDOW_HOURS = 24


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        db.create_all()
        ensure_default_roles()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def make_user(email, *role_names):
    user = User(email=email, full_name=email.split("@")[0].title())
    for name in role_names:
        user.roles.append(Role.query.filter_by(name=name).one())
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def player(app):
    return make_user("player@example.com", "PLAYER")


@pytest.fixture
def other_player(app):
    return make_user("other@example.com", "PLAYER")


@pytest.fixture
def admin(app):
    return make_user("owner@example.com", "ADMIN")


@pytest.fixture
def venue(admin):
    v = Venue(name="Padel Noord", city="Amsterdam", owner_user_id=admin.id)
    db.session.add(v)
    db.session.commit()
    return v


@pytest.fixture
def court(venue):
    c = Court(venue_id=venue.id, name="Court 1", hourly_rate=Decimal("25.00"), capacity=4, is_outdoor=True)
    db.session.add(c)
    db.session.commit()
    return c


@pytest.fixture
def play_date():
    return date.today() + timedelta(days=3)


def login(client, user):
    token = create_session(user.id)
    client.set_cookie(TestingConfig.AUTH_COOKIE_NAME, token)
    return token


def add_provider_payment(booking, session_id="cs_test_1", intent_id=None):
    payment = Payment(
        booking_id=booking.id,
        user_id=booking.user_id,
        venue_id=booking.venue_id,
        amount=booking.total_price,
        currency="EUR",
        status="INIT",
        provider_payment_id=session_id,
        provider_intent_id=intent_id,
    )
    db.session.add(payment)
    db.session.commit()
    return payment
