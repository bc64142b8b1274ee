"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores, the
authenticator and the guard do the work; role defaults and the Admin
bypass live in auth/permissions.py.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class User:
    """A person who can sign in to AssetDesk.

    email is stored lower-cased; lookups normalise the same way so uniqueness
    is effectively case-insensitive.

    password holds a plaintext secret that has not been hashed yet. It is set
    on a new candidate or by a password change and is consumed by
    UserStore.create()/save(), which hash it into hashed_password and reset it
    to None. It is never persisted or returned to clients.

    permissions are explicit grants on top of the role defaults.

    id is None before the record is written to the database.
    """

    username: str
    email: str
    role: str = "Employee"  # "Admin", "Manager", "Employee"
    id: int | None = None
    hashed_password: str | None = None
    password: str | None = field(default=None, repr=False)
    permissions: list[str] = field(default_factory=list)
    first_name: str = ""
    last_name: str = ""
    department: str | None = None
    position: str | None = None
    is_active: bool = True
    login_attempts: int = 0
    lock_until: datetime | None = None  # aware UTC
    last_login: datetime | None = None  # aware UTC
    created_at: str | None = None  # ISO 8601, set by the store on insert


@dataclass
class AuthResult:
    """What a successful login or registration hands back to the caller."""

    token: str
    user: User
