"""Tests for the append-only attempt ledger."""
import pytest
from sqlalchemy.exc import OperationalError
from structlog.testing import capture_logs

from errors import AppendOnlyViolation, StorageFailure
from models import LoginAttempt, OtpAttempt, db
from tests.helpers import ALICE, ALICE_PASSWORD


class TestRecordLogin:

    def test_records_outcome_and_client_details(self, ledger, clock):
        row = ledger.record_login(ALICE, ALICE_PASSWORD, True, "203.0.113.7", "Mozilla/5.0")

        stored = db.session.get(LoginAttempt, row.id)
        assert stored.subject_email == ALICE
        assert stored.success is True
        assert stored.ip == "203.0.113.7"
        assert stored.user_agent == "Mozilla/5.0"
        assert stored.created_at == clock.now

    def test_password_is_never_stored(self, ledger):
        row = ledger.record_login(ALICE, ALICE_PASSWORD, False, None, None)

        assert row.credential_fingerprint is not None
        assert len(row.credential_fingerprint) == 64
        assert ALICE_PASSWORD not in row.credential_fingerprint

    def test_same_password_yields_same_fingerprint(self, ledger):
        first = ledger.record_login(ALICE, "hunter22", False)
        second = ledger.record_login("bob@example.com", "hunter22", False)
        other = ledger.record_login(ALICE, "hunter23", False)

        assert first.credential_fingerprint == second.credential_fingerprint
        assert first.credential_fingerprint != other.credential_fingerprint

    def test_failed_and_malformed_submissions_are_recorded(self, ledger):
        ledger.record_login("", None, False)
        ledger.record_login(None, 12345, False)

        rows = db.session.query(LoginAttempt).all()
        assert len(rows) == 2
        assert all(r.success is False for r in rows)
        assert all(r.subject_email == "" for r in rows)
        assert all(r.credential_fingerprint is None for r in rows)

    def test_long_user_agent_is_truncated(self, ledger):
        row = ledger.record_login(ALICE, "pw", False, "198.51.100.2", "x" * 1000)
        assert len(row.user_agent) == 255


class TestRecordOtpAttempt:

    def test_records_submitted_code(self, ledger):
        row = ledger.record_otp_attempt(ALICE, "482913", True, "203.0.113.7", "curl/8.0")

        stored = db.session.get(OtpAttempt, row.id)
        assert stored.submitted_code == "482913"
        assert stored.success is True

    def test_oversized_garbage_is_clipped(self, ledger):
        row = ledger.record_otp_attempt(ALICE, "9" * 500, False)
        assert row.submitted_code == "9" * 16

    def test_missing_code_is_recorded_as_empty(self, ledger):
        row = ledger.record_otp_attempt(ALICE, None, False)
        assert row.submitted_code == ""


class TestAppendOnly:

    def test_login_attempts_cannot_be_updated(self, ledger):
        row = ledger.record_login(ALICE, "pw", False)
        row.success = True

        with pytest.raises(AppendOnlyViolation):
            db.session.commit()
        db.session.rollback()

        assert db.session.get(LoginAttempt, row.id).success is False

    def test_otp_attempts_cannot_be_deleted(self, ledger):
        row = ledger.record_otp_attempt(ALICE, "000000", False)
        db.session.delete(row)

        with pytest.raises(AppendOnlyViolation):
            db.session.commit()
        db.session.rollback()

        assert db.session.query(OtpAttempt).count() == 1


class TestWriteFailure:

    def test_unreachable_store_is_surfaced(self, ledger, monkeypatch):
        def boom():
            raise OperationalError("INSERT", {}, Exception("could not connect"))

        monkeypatch.setattr(db.session(), "commit", boom)

        with capture_logs() as logs:
            with pytest.raises(StorageFailure):
                ledger.record_otp_attempt(ALICE, "123456", False)

        failures = [entry for entry in logs if entry["event"] == "ledger.write_failed"]
        assert len(failures) == 1
        assert failures[0]["log_level"] == "error"
        assert failures[0]["kind"] == "otp"
