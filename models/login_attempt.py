from models.append_only import append_only
from models.db import db
from utils.clock import utcnow


@append_only
class LoginAttempt(db.Model):
    __tablename__ = "login_attempts"

    id = db.Column(db.Integer, primary_key=True)

    # Empty string when the request carried no usable email
    subject_email = db.Column(db.String(255), nullable=False, index=True)

    # HMAC of the submitted password, never the password itself
    credential_fingerprint = db.Column(db.String(64), nullable=True)
    success = db.Column(db.Boolean, nullable=False)

    ip = db.Column(db.String(64), nullable=True, index=True)
    user_agent = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
