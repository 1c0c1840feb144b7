import hashlib
import hmac
import logging
import os
import re
from typing import Iterable, Optional
from uuid import uuid4

from lankatours import settings
from lankatours.models import Identity, RegisterRequest, User
from lankatours.services.clock import Clock, utc_now
from lankatours.services.database import Database
from lankatours.services.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

PASSWORD_ITERATIONS = 120_000
MIN_PASSWORD_LENGTH = 6
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def hash_password(password: str, *, salt: Optional[bytes] = None) -> str:
    salt = salt or os.urandom(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, PASSWORD_ITERATIONS)
    return f"pbkdf2_sha256${PASSWORD_ITERATIONS}${salt.hex()}${digest.hex()}"


def verify_password(password: str, encoded: str) -> bool:
    try:
        algorithm, iterations, salt_hex, digest_hex = encoded.split("$", 3)
        salt = bytes.fromhex(salt_hex)
        expected = bytes.fromhex(digest_hex)
        rounds = int(iterations)
    except ValueError:
        return False
    if algorithm != "pbkdf2_sha256":
        return False
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, rounds)
    return hmac.compare_digest(digest, expected)


class AccountService:
    def __init__(
        self,
        database: Database,
        *,
        admin_emails: Optional[Iterable[str]] = None,
        clock: Clock = utc_now,
    ) -> None:
        self.database = database
        self.clock = clock
        emails = settings.ADMIN_EMAILS if admin_emails is None else admin_emails
        self._admin_emails = {email.strip().lower() for email in emails}

    def register(self, request: RegisterRequest) -> User:
        name = request.name.strip()
        email = request.email.strip().lower()
        if not name:
            raise ValidationError("Name is required")
        if not EMAIL_PATTERN.match(email):
            raise ValidationError("A valid email address is required")
        if len(request.password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

        user = User(
            id=f"usr_{uuid4().hex[:10]}",
            name=name,
            email=email,
            role="admin" if email in self._admin_emails else "tourist",
            password_hash=hash_password(request.password),
            created_at=self.clock(),
        )
        with self.database.session() as session:
            if session.users.first(email=email):
                raise ConflictError("An account with this email already exists")
            session.users.insert(user)
        logger.info("Registered user %s with role %s", user.id, user.role)
        return user

    def authenticate(self, email: str, password: str) -> User:
        normalized = email.strip().lower()
        with self.database.session() as session:
            user = session.users.first(email=normalized)
        if not user or not verify_password(password, user.password_hash):
            logger.warning("Failed login for %s", normalized)
            raise AuthorizationError("Invalid credentials")
        return user

    def get_user(self, user_id: str) -> User:
        with self.database.session() as session:
            user = session.users.get(user_id)
        if not user:
            raise NotFoundError("User not found")
        return user

    def identity(self, user_id: str) -> Identity:
        user = self.get_user(user_id)
        return Identity(user_id=user.id, role=user.role)
