from datetime import datetime, timedelta

ALICE = "alice@example.com"
ALICE_PASSWORD = "correct horse battery staple"


class FrozenClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float):
        self.now += timedelta(seconds=seconds)


class Outbox:
    """Stands in for the email sender; keeps every issued challenge."""

    def __init__(self):
        self.sent = []
        self.fail_with = None

    def __call__(self, challenge):
        if self.fail_with:
            return False, self.fail_with
        self.sent.append(challenge)
        return True, None

    @property
    def last(self):
        return self.sent[-1]


def fixed_codes(*codes):
    it = iter(codes)
    return lambda: next(it)
