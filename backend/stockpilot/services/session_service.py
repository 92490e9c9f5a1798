# Overview: Service-layer operations for API tokens and the acting-user context.

"""
API Token Service

WHY: Every order and ledger movement is attributed to the user who caused it.
Authentication itself (login screens, password handling) lives outside this
system; here a user simply presents a bearer token.

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage (fast, one-way)
- Issuing a new token replaces the previous one
"""

import secrets
import hashlib
from dataclasses import dataclass

from ..errors import NotFound, ValidationError
from ..extensions import db
from ..models import User, USER_ROLES


@dataclass(frozen=True)
class ActingUser:
    """
    The authenticated user on whose behalf a service call runs.

    Services only need identity, display name (snapshotted into orders and
    movements) and role (admin-only operations).
    """
    id: int | None
    name: str
    role: str = "staff"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @classmethod
    def from_user(cls, user: User) -> "ActingUser":
        return cls(id=user.id, name=user.name, role=user.role)


def generate_token() -> str:
    """
    Generate cryptographically secure random token.

    Returns 64-character hex string (32 bytes of entropy).
    This is the plaintext token sent to client (never stored).
    """
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """
    Hash token for database storage using SHA-256.

    Tokens are already high-entropy (unlike passwords), so a fast hash is
    sufficient.
    """
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def create_user(*, username: str, name: str, role: str = "staff") -> tuple[User, str]:
    """Create a user and return it together with its plaintext API token."""
    username = (username or "").strip()
    name = (name or "").strip()
    if not username:
        raise ValidationError("username is required")
    if not name:
        raise ValidationError("name is required")
    if role not in USER_ROLES:
        raise ValidationError(f"role must be one of: {', '.join(USER_ROLES)}")

    token = generate_token()
    user = User(username=username, name=name, role=role, api_token_hash=hash_token(token))
    db.session.add(user)
    db.session.commit()
    return user, token


def issue_token(username: str) -> str:
    """Rotate a user's API token. The old token stops working immediately."""
    user = db.session.query(User).filter_by(username=username).first()
    if user is None:
        raise NotFound(f"User '{username}' not found.")

    token = generate_token()
    user.api_token_hash = hash_token(token)
    db.session.commit()
    return token


def validate_token(token: str | None) -> ActingUser | None:
    """Resolve a plaintext token to the acting user, or None if unknown/inactive."""
    if not token:
        return None

    user = db.session.query(User).filter_by(api_token_hash=hash_token(token)).first()
    if user is None or not user.is_active:
        return None
    return ActingUser.from_user(user)
