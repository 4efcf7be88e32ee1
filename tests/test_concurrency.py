"""
Concurrent issue and redemption against a file-backed SQLite database, one
app context (and so one session and connection) per thread.
"""
import threading

from app import create_app
from config import TestConfig
from models import OtpChallenge, db
from services.identity import IdentityDirectory
from services.otp import OtpLifecycleManager, VerificationResult
from tests.helpers import fixed_codes

WORKERS = 8
EMAIL = "race@example.com"


def _file_app(tmp_path):
    class FileConfig(TestConfig):
        SQLALCHEMY_DATABASE_URI = "sqlite:///" + str(tmp_path / "otp.db")
        STORAGE_TIMEOUT_SECONDS = 15

    app = create_app(FileConfig)
    with app.app_context():
        db.create_all()
    return app


def _manager(app, clock, code_factory=None):
    manager = OtpLifecycleManager(
        db.session,
        app.config["SECRET_KEY"],
        IdentityDirectory(db.session),
        clock=clock,
    )
    if code_factory:
        manager.code_factory = code_factory
    return manager


def _run_together(target):
    """Start WORKERS threads on ``target(index)`` and collect results and errors."""
    barrier = threading.Barrier(WORKERS, timeout=30)
    results = []
    errors = []
    lock = threading.Lock()

    def run(index):
        try:
            outcome = target(index, barrier)
            with lock:
                results.append(outcome)
        except Exception as exc:  # surfaced through the caller's assertions
            with lock:
                errors.append(exc)

    threads = [threading.Thread(target=run, args=(i,)) for i in range(WORKERS)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)
    return results, errors


def test_only_one_of_many_simultaneous_submissions_is_accepted(tmp_path, clock):
    app = _file_app(tmp_path)
    with app.app_context():
        _manager(app, clock, fixed_codes("482913")).issue(EMAIL)

    def submit(index, barrier):
        with app.app_context():
            manager = _manager(app, clock)
            barrier.wait()
            return manager.verify(EMAIL, "482913")

    results, errors = _run_together(submit)

    assert errors == []
    assert len(results) == WORKERS
    assert results.count(VerificationResult.ACCEPTED) == 1
    assert results.count(VerificationResult.INVALID_OR_NOT_FOUND) == WORKERS - 1

    with app.app_context():
        db.engine.dispose()


def test_simultaneous_issues_leave_one_live_challenge(tmp_path, clock):
    app = _file_app(tmp_path)

    def issue(index, barrier):
        with app.app_context():
            manager = _manager(app, clock, fixed_codes(f"{index:06d}"))
            barrier.wait()
            return manager.issue(EMAIL).code

    codes, errors = _run_together(issue)

    assert errors == []
    assert sorted(codes) == [f"{i:06d}" for i in range(WORKERS)]

    with app.app_context():
        live = db.session.query(OtpChallenge).filter_by(subject_email=EMAIL, consumed=False).count()
        assert live == 1

        manager = _manager(app, clock)
        outcomes = [manager.verify(EMAIL, code) for code in codes]
        assert outcomes.count(VerificationResult.ACCEPTED) == 1
        assert outcomes.count(VerificationResult.INVALID_OR_NOT_FOUND) == WORKERS - 1

        db.engine.dispose()
