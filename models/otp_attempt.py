from models.append_only import append_only
from models.db import db
from utils.clock import utcnow


@append_only
class OtpAttempt(db.Model):
    __tablename__ = "otp_attempts"

    id = db.Column(db.Integer, primary_key=True)

    subject_email = db.Column(db.String(255), nullable=False, index=True)
    submitted_code = db.Column(db.String(16), nullable=False)
    success = db.Column(db.Boolean, nullable=False)

    ip = db.Column(db.String(64), nullable=True, index=True)
    user_agent = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
