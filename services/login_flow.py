import structlog

from errors import DeliveryFailure, InvalidCredentials, StorageFailure, ValidationError
from models.db import db
from services.identity import IdentityDirectory
from services.ledger import AttemptLedger
from services.otp import IssuedChallenge, OtpLifecycleManager, VerificationResult, is_well_formed_code
from utils.clock import utcnow
from utils.validation import is_valid_email

logger = structlog.get_logger(__name__)


class LoginFlow:
    """
    Handler-level orchestration of the two login steps.

    Password and code submissions each produce exactly one ledger record,
    whatever the outcome. Resend produces none.
    """

    def __init__(self, identities: IdentityDirectory, otp: OtpLifecycleManager, ledger: AttemptLedger, sender):
        self.identities = identities
        self.otp = otp
        self.ledger = ledger
        self.sender = sender

    @classmethod
    def from_app(cls, app) -> "LoginFlow":
        session = db.session
        clock = app.extensions.get("clock", utcnow)
        secret_key = app.config["SECRET_KEY"]

        identities = IdentityDirectory(session, bcrypt_rounds=app.config.get("BCRYPT_ROUNDS", 12))
        otp = OtpLifecycleManager(
            session,
            secret_key,
            identities,
            ttl_seconds=app.config.get("OTP_TTL_SECONDS", 300),
            clock=clock,
        )
        ledger = AttemptLedger(session, secret_key, clock=clock)
        return cls(identities, otp, ledger, app.extensions["otp_sender"])

    def submit_password(self, email, password, ip=None, user_agent=None) -> IssuedChallenge:
        if not is_valid_email(email) or not isinstance(password, str) or not password:
            self.ledger.record_login(email, password, False, ip, user_agent)
            raise ValidationError("A valid email and password are required")

        try:
            user = self.identities.authenticate(email, password)
        except StorageFailure:
            self.ledger.record_login(email, password, False, ip, user_agent)
            raise

        self.ledger.record_login(email, password, user is not None, ip, user_agent)
        if user is None:
            raise InvalidCredentials("Invalid email or password")

        challenge = self.otp.issue(user.email)
        self._deliver(challenge)
        return challenge

    def submit_code(self, email, code, ip=None, user_agent=None) -> VerificationResult:
        if not is_valid_email(email):
            self.ledger.record_otp_attempt(email, code, False, ip, user_agent)
            raise ValidationError("A valid email is required")
        if not is_well_formed_code(code):
            self.ledger.record_otp_attempt(email, code, False, ip, user_agent)
            raise ValidationError("Code must be 6 digits")

        try:
            result = self.otp.verify(email, code)
        except StorageFailure:
            self.ledger.record_otp_attempt(email, code, False, ip, user_agent)
            raise

        self.ledger.record_otp_attempt(email, code, result is VerificationResult.ACCEPTED, ip, user_agent)
        return result

    def resend(self, email) -> IssuedChallenge:
        if not is_valid_email(email):
            raise ValidationError("A valid email is required")
        challenge = self.otp.resend(email)
        self._deliver(challenge)
        return challenge

    def _deliver(self, challenge: IssuedChallenge):
        ok, error = self.sender(challenge)
        if not ok:
            # challenge stays valid; the user can ask for a resend
            logger.warning("email.delivery_failed", subject=challenge.subject_email, reason=error)
            raise DeliveryFailure("Could not deliver verification code")
