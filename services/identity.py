from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from errors import StorageFailure, ValidationError
from models.user import User
from security.password import hash_password, verify_password
from utils.validation import is_valid_email, normalize_email

# bcrypt only looks at the first 72 bytes; newer releases refuse anything longer
BCRYPT_MAX_PASSWORD_BYTES = 72


class IdentityDirectory:
    """Read side of user accounts, plus bootstrap creation for the CLI."""

    def __init__(self, session, bcrypt_rounds: int = 12):
        self.session = session
        self.bcrypt_rounds = bcrypt_rounds

    def find_by_email(self, email: str) -> Optional[User]:
        try:
            return self.session.query(User).filter_by(email=normalize_email(email)).first()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StorageFailure("Could not look up identity") from exc

    def authenticate(self, email: str, password: str) -> Optional[User]:
        user = self.find_by_email(email)
        if user is None or not verify_password(password, user.password_hash):
            return None
        return user

    def create(self, email: str, password: str) -> User:
        email = normalize_email(email)
        if not is_valid_email(email):
            raise ValidationError("Invalid email")
        if not isinstance(password, str) or not password:
            raise ValidationError("Password is required")
        if len(password.encode("utf-8")) > BCRYPT_MAX_PASSWORD_BYTES:
            raise ValidationError("Password is too long")

        user = User(email=email, password_hash=hash_password(password, rounds=self.bcrypt_rounds))
        self.session.add(user)
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            raise ValidationError("Email already registered") from exc
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StorageFailure("Could not create identity") from exc
        return user
