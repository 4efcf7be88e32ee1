"""
Append-only audit trail of login and OTP submissions.

Every write is committed on its own. A write that cannot be committed is
logged and raised as StorageFailure; it is never dropped.
"""
import structlog
from sqlalchemy.exc import SQLAlchemyError

from errors import StorageFailure
from models.login_attempt import LoginAttempt
from models.otp_attempt import OtpAttempt
from security.fingerprint import keyed_digest
from utils.clock import utcnow

logger = structlog.get_logger(__name__)


def _clip(value, limit: int):
    if value is None:
        return None
    return str(value)[:limit]


class AttemptLedger:
    def __init__(self, session, secret_key: str, clock=utcnow):
        self.session = session
        self.secret_key = secret_key
        self.clock = clock

    def record_login(self, email, credential, success: bool, ip=None, user_agent=None) -> LoginAttempt:
        fingerprint = None
        if isinstance(credential, str) and credential:
            fingerprint = keyed_digest(self.secret_key, credential)

        row = LoginAttempt(
            subject_email=_clip(email, 255) or "",
            credential_fingerprint=fingerprint,
            success=bool(success),
            ip=_clip(ip, 64),
            user_agent=_clip(user_agent, 255),
            created_at=self.clock(),
        )
        return self._append(row, "login")

    def record_otp_attempt(self, email, submitted_code, success: bool, ip=None, user_agent=None) -> OtpAttempt:
        row = OtpAttempt(
            subject_email=_clip(email, 255) or "",
            submitted_code=_clip(submitted_code, 16) or "",
            success=bool(success),
            ip=_clip(ip, 64),
            user_agent=_clip(user_agent, 255),
            created_at=self.clock(),
        )
        return self._append(row, "otp")

    def _append(self, row, kind: str):
        try:
            self.session.add(row)
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error(
                "ledger.write_failed",
                kind=kind,
                subject=row.subject_email,
                success=row.success,
                exc_info=True,
            )
            raise StorageFailure(f"Could not record {kind} attempt") from exc
        return row
