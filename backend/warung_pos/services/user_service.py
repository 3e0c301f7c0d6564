# Overview: Staff profile lookups and creation used for attribution and authorization.

"""
Staff Service

Passwords and sessions are owned by the upstream auth layer. This service
only manages the local profile (name, role, active flag) that cashier
attribution and role checks read.
"""

from __future__ import annotations

from ..extensions import db
from ..models import User
from ..validation import ConflictError, ValidationError, USER_ROLES


def create_user(
    email: str,
    first_name: str | None = None,
    last_name: str | None = None,
    role: str = "employee",
) -> User:
    email = (email or "").strip().lower()
    if not email:
        raise ValidationError("email is required")
    if role not in USER_ROLES:
        raise ValidationError(f"role must be one of {', '.join(USER_ROLES)}")

    if db.session.query(User).filter_by(email=email).first():
        raise ConflictError(f"User {email} already exists")

    user = User(email=email, first_name=first_name, last_name=last_name, role=role)
    db.session.add(user)
    db.session.commit()
    return user


def list_users() -> list[User]:
    return db.session.query(User).order_by(User.id.asc()).all()


def get_active_user(user_id: int) -> User | None:
    """Return the user if it exists and is active, else None."""
    user = db.session.get(User, user_id)
    if user is None or not user.is_active:
        return None
    return user
