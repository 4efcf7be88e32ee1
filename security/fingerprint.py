import hashlib
import hmac


def keyed_digest(secret_key: str, value: str) -> str:
    """
    HMAC-SHA256 hex digest. Used wherever a secret has to be matched or
    correlated later without being stored: OTP codes and submitted passwords.
    """
    return hmac.new(
        secret_key.encode("utf-8"),
        value.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()
