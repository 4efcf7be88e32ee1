class AuthError(Exception):
    """Base class for errors raised by the login workflow."""


class ValidationError(AuthError):
    """Malformed email, password or code shape."""


class InvalidCredentials(AuthError):
    """Unknown identity or wrong password. Deliberately indistinguishable."""


class IdentityNotFound(AuthError):
    def __init__(self, email: str):
        super().__init__(f"No identity registered for {email!r}")
        self.email = email


class DeliveryFailure(AuthError):
    """The code was issued but could not be sent out of band."""


class StorageFailure(AuthError):
    """
    Any persistence error, timeouts included. Always propagated: it must never
    be turned into an authentication success or failure.
    """


class AppendOnlyViolation(AuthError):
    """An attempt was made to update or delete an audit record."""
