# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication and account approval.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor from BCRYPT_ROUNDS, default 12)
- Minimum 8 characters, at least one letter and one digit
- Session tokens managed separately (see session_service.py)

ACCOUNT LIFECYCLE:
- register() creates a "pending" user
- an admin approves or rejects it
- only "approved" users authenticate

AccountService is created once by the app factory and stored in
app.extensions["accounts"]. Persistence goes through a UserRepository so the
approval rules do not depend on the session directly. Registration and status
changes are published as blinker signals (see backoffice.signals).
"""
from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod

import bcrypt
from flask import current_app

from ..extensions import db
from ..models import Brand, User, UserRole, UserStatus
from ..signals import user_registered, user_status_changed
from ..time_utils import utcnow
from ..validation import validate_email, ValidationError
from .session_service import revoke_all_user_sessions

logger = logging.getLogger(__name__)


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


class AccountError(Exception):
    """Raised for account operations that break the approval rules."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one letter
    - At least one digit

    Raises PasswordValidationError if requirements not met.
    """
    if not isinstance(password, str) or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Za-z]', password):
        raise PasswordValidationError("Password must contain at least one letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")


def hash_password(password: str, rounds: int | None = None) -> str:
    """
    Hash password using bcrypt.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    if rounds is None:
        rounds = current_app.config.get("BCRYPT_ROUNDS", 12)
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    bcrypt.checkpw() compares in constant time. A malformed stored hash
    counts as a mismatch.
    """
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


class UserRepository(ABC):
    """Storage used by AccountService."""

    @abstractmethod
    def get(self, user_id: int) -> User | None:
        raise NotImplementedError

    @abstractmethod
    def get_by_email(self, email: str) -> User | None:
        raise NotImplementedError

    @abstractmethod
    def list(self, status: str | None = None) -> list[User]:
        raise NotImplementedError

    @abstractmethod
    def add(self, user: User) -> User:
        raise NotImplementedError

    @abstractmethod
    def save(self, user: User) -> User:
        raise NotImplementedError

    @abstractmethod
    def delete(self, user: User) -> None:
        raise NotImplementedError


class SqlAlchemyUserRepository(UserRepository):

    def get(self, user_id: int) -> User | None:
        return db.session.query(User).filter_by(id=user_id).first()

    def get_by_email(self, email: str) -> User | None:
        return db.session.query(User).filter(db.func.lower(User.email) == email.lower()).first()

    def list(self, status: str | None = None) -> list[User]:
        query = db.session.query(User)
        if status:
            query = query.filter(User.status == status)
        return query.order_by(User.created_at.desc(), User.id.desc()).all()

    def add(self, user: User) -> User:
        db.session.add(user)
        db.session.commit()
        return user

    def save(self, user: User) -> User:
        db.session.commit()
        return user

    def delete(self, user: User) -> None:
        db.session.delete(user)
        db.session.commit()


class AccountService:
    """Registration, login and admin approval of back-office users."""

    def __init__(self, repository: UserRepository):
        self.repository = repository

    def register(
        self,
        *,
        email: str,
        password: str,
        display_name: str | None = None,
        brand: str | None = None,
        role: str = UserRole.USER.value,
        status: str = UserStatus.PENDING.value,
    ) -> User:
        """
        Create a new account.

        Self-registration always yields a pending user; admins created from
        the CLI pass role/status explicitly.

        Raises:
            ValidationError: bad email / brand
            PasswordValidationError: weak password
            AccountError: email already registered
        """
        email = validate_email((email or "").strip(), required=True)
        if brand is not None and brand not in Brand.values():
            raise ValidationError(f"brand must be one of: {', '.join(Brand.values())}")
        if role not in (UserRole.ADMIN.value, UserRole.USER.value):
            raise ValidationError("role must be 'admin' or 'user'")

        if self.repository.get_by_email(email):
            raise AccountError("An account with this email already exists")

        user = User(
            email=email,
            display_name=(display_name or "").strip() or email.split("@")[0],
            password_hash=hash_password(password),
            role=role,
            status=status,
            brand=brand,
        )
        self.repository.add(user)
        logger.info("Registered user %s (%s)", user.email, user.status)
        user_registered.send(self, user=user)
        return user

    def authenticate(self, email: str, password: str) -> User | None:
        """
        Return the user when credentials are valid and the account is approved.

        Raises AccountError for correct credentials on a pending or rejected
        account so the caller can tell the user why login was refused.
        """
        if not email or not password:
            return None
        user = self.repository.get_by_email(email.strip())
        if user is None or not verify_password(password, user.password_hash):
            return None

        if user.status == UserStatus.PENDING.value:
            raise AccountError("Account is awaiting admin approval")
        if user.status != UserStatus.APPROVED.value:
            raise AccountError("Account has been rejected")

        user.last_login_at = utcnow()
        self.repository.save(user)
        return user

    def _set_status(self, user_id: int, status: str, *, acting_user: User | None = None) -> User | None:
        user = self.repository.get(user_id)
        if user is None:
            return None
        if acting_user is not None and acting_user.id == user.id:
            raise AccountError("You cannot change your own account status")
        if user.status == status:
            return user

        previous = user.status
        user.status = status
        user.status_changed_at = utcnow()
        self.repository.save(user)

        logger.info("User %s status %s -> %s", user.email, previous, status)
        user_status_changed.send(self, user=user, previous=previous)
        return user

    def approve(self, user_id: int, *, acting_user: User | None = None) -> User | None:
        return self._set_status(user_id, UserStatus.APPROVED.value, acting_user=acting_user)

    def reject(self, user_id: int, *, acting_user: User | None = None) -> User | None:
        """Rejecting also revokes any live sessions of the account."""
        user = self._set_status(user_id, UserStatus.REJECTED.value, acting_user=acting_user)
        if user is not None:
            revoke_all_user_sessions(user.id, reason="Account rejected")
        return user

    def delete(self, user_id: int, *, acting_user: User | None = None) -> bool:
        user = self.repository.get(user_id)
        if user is None:
            return False
        if user.role == UserRole.ADMIN.value:
            raise AccountError("Admin accounts cannot be deleted")
        if acting_user is not None and acting_user.id == user.id:
            raise AccountError("You cannot delete your own account")
        self.repository.delete(user)
        logger.info("Deleted user %s", user.email)
        return True

    def list_users(self, status: str | None = None) -> list[User]:
        if status and status not in (s.value for s in UserStatus):
            raise ValidationError("status must be one of: pending, approved, rejected")
        return self.repository.list(status)


def get_account_service() -> AccountService:
    return current_app.extensions["accounts"]
