"""
Shared fixtures: an app on in-memory SQLite with a controllable clock and a
captured outbox instead of SMTP.
"""
from datetime import datetime

import pytest

from app import create_app
from config import TestConfig
from models import db
from services.identity import IdentityDirectory
from services.ledger import AttemptLedger
from services.otp import OtpLifecycleManager
from tests.helpers import ALICE, ALICE_PASSWORD, FrozenClock, Outbox


@pytest.fixture
def clock():
    return FrozenClock(datetime(2026, 3, 2, 9, 30, 0))


@pytest.fixture
def outbox():
    return Outbox()


@pytest.fixture
def app(clock, outbox):
    app = create_app(TestConfig)
    app.extensions["clock"] = clock
    app.extensions["otp_sender"] = outbox

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def identities(app):
    return IdentityDirectory(db.session, bcrypt_rounds=app.config["BCRYPT_ROUNDS"])


@pytest.fixture
def alice(identities):
    return identities.create(ALICE, ALICE_PASSWORD)


@pytest.fixture
def manager(app, clock, identities):
    return OtpLifecycleManager(
        db.session,
        app.config["SECRET_KEY"],
        identities,
        ttl_seconds=app.config["OTP_TTL_SECONDS"],
        clock=clock,
    )


@pytest.fixture
def ledger(app, clock):
    return AttemptLedger(db.session, app.config["SECRET_KEY"], clock=clock)
