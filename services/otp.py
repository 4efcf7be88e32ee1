"""
OTP lifecycle: issue, single-use verification, resend and reaping.

Per identity a challenge moves NoChallenge -> Pending -> {Consumed | Expired}.
Issuing always replaces any Pending challenge for the same email, so at most
one unconsumed challenge exists per identity.
"""
import re
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

import structlog
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError

from errors import IdentityNotFound, StorageFailure
from models.otp_challenge import OtpChallenge
from security.fingerprint import keyed_digest
from utils.clock import utcnow

logger = structlog.get_logger(__name__)

CODE_LENGTH = 6
DEFAULT_TTL_SECONDS = 5 * 60

_CODE_RE = re.compile(r"[0-9]{%d}" % CODE_LENGTH)


class VerificationResult(str, Enum):
    ACCEPTED = "accepted"
    INVALID_OR_NOT_FOUND = "invalid_or_not_found"
    EXPIRED = "expired"


@dataclass(frozen=True)
class IssuedChallenge:
    """What the caller gets back from issue/resend. Only place the raw code lives."""
    subject_email: str
    code: str
    issued_at: datetime
    expires_at: datetime

    @property
    def ttl_seconds(self) -> int:
        return int((self.expires_at - self.issued_at).total_seconds())


def generate_code() -> str:
    # uniform over 000000-999999
    return f"{secrets.randbelow(10 ** CODE_LENGTH):0{CODE_LENGTH}d}"


def is_well_formed_code(value) -> bool:
    return isinstance(value, str) and _CODE_RE.fullmatch(value) is not None


class OtpLifecycleManager:
    def __init__(
        self,
        session,
        secret_key: str,
        identities,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock=utcnow,
        code_factory=generate_code,
    ):
        self.session = session
        self.secret_key = secret_key
        self.identities = identities
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self.code_factory = code_factory

    def _code_hash(self, email: str, code: str) -> str:
        return keyed_digest(self.secret_key, f"{email}:{code}")

    def _pending(self, email: str):
        return self.session.query(OtpChallenge).filter(
            OtpChallenge.subject_email == email,
            OtpChallenge.consumed.is_(False),
        )

    def issue(self, email: str) -> IssuedChallenge:
        """
        Create a fresh challenge for ``email``. Prior unconsumed challenges are
        deleted in the same transaction as the insert.
        """
        now = self.clock()
        code = self.code_factory()
        expires_at = now + timedelta(seconds=self.ttl_seconds)

        try:
            superseded = self._pending(email).delete(synchronize_session=False)
            self.session.add(OtpChallenge(
                subject_email=email,
                code_hash=self._code_hash(email, code),
                issued_at=now,
                expires_at=expires_at,
                consumed=False,
            ))
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StorageFailure("Could not persist OTP challenge") from exc

        logger.info("otp.issued", subject=email, superseded=superseded, expires_at=expires_at.isoformat())
        return IssuedChallenge(subject_email=email, code=code, issued_at=now, expires_at=expires_at)

    def verify(self, email: str, submitted_code) -> VerificationResult:
        """
        Redeem ``submitted_code`` for ``email``.

        The consume step is one conditional UPDATE, so among concurrent
        submissions of the same code at most one sees a matched row. Expired
        challenges are left unconsumed and keep reporting EXPIRED.
        """
        if not is_well_formed_code(submitted_code):
            return VerificationResult.INVALID_OR_NOT_FOUND

        now = self.clock()
        code_hash = self._code_hash(email, submitted_code)

        try:
            matched = (
                self._pending(email)
                .filter(
                    OtpChallenge.code_hash == code_hash,
                    OtpChallenge.expires_at >= now,
                )
                .update(
                    {OtpChallenge.consumed: True, OtpChallenge.consumed_at: now},
                    synchronize_session=False,
                )
            )
            self.session.commit()

            if matched:
                result = VerificationResult.ACCEPTED
            else:
                stale = (
                    self._pending(email)
                    .filter(OtpChallenge.code_hash == code_hash)
                    .with_entities(OtpChallenge.id)
                    .first()
                )
                # unconsumed but not matched by the update => past expires_at
                result = VerificationResult.EXPIRED if stale else VerificationResult.INVALID_OR_NOT_FOUND
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StorageFailure("Could not verify OTP challenge") from exc

        logger.info("otp.verified", subject=email, result=result.value)
        return result

    def resend(self, email: str) -> IssuedChallenge:
        if self.identities.find_by_email(email) is None:
            raise IdentityNotFound(email)
        return self.issue(email)

    def reap_expired(self, grace_seconds: int = 0) -> int:
        """
        Storage hygiene only; verify re-checks expiry on every call.
        Removes challenges expired for longer than ``grace_seconds`` and
        consumed ones.
        """
        cutoff = self.clock() - timedelta(seconds=grace_seconds)
        try:
            deleted = (
                self.session.query(OtpChallenge)
                .filter(or_(OtpChallenge.expires_at < cutoff, OtpChallenge.consumed.is_(True)))
                .delete(synchronize_session=False)
            )
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StorageFailure("Could not reap OTP challenges") from exc

        logger.info("otp.reaped", deleted=deleted, cutoff=cutoff.isoformat())
        return deleted
