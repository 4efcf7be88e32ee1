from models.db import db
from utils.clock import utcnow


class OtpChallenge(db.Model):
    __tablename__ = "otp_challenges"

    id = db.Column(db.Integer, primary_key=True)
    subject_email = db.Column(db.String(255), nullable=False, index=True)

    # keyed digest of the 6-digit code; the raw code is never stored
    code_hash = db.Column(db.String(64), nullable=False)

    issued_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    expires_at = db.Column(db.DateTime, nullable=False)

    consumed = db.Column(db.Boolean, default=False, nullable=False)
    consumed_at = db.Column(db.DateTime, nullable=True)

    __table_args__ = (
        # verify() looks up (email, code, consumed) in a single conditional update
        db.Index("ix_otp_challenges_lookup", "subject_email", "code_hash", "consumed"),
    )
