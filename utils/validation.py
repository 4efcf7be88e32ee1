def normalize_email(value) -> str:
    if not isinstance(value, str):
        return ""
    return value.strip().lower()


def is_valid_email(email) -> bool:
    if not isinstance(email, str) or len(email) > 255:
        return False
    local, _, domain = email.partition("@")
    return bool(local) and "." in domain and " " not in email
