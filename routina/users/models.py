"""
User record model and input validation.

The record is what the store keeps, password hash and salt included.
Everything leaving the process goes through :meth:`UserRecord.to_public`,
which builds a new dict without them.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Mapping, Optional

from routina.faults import ValidationFault

from .hashing import PasswordHasher

PUBLIC_FIELDS = ("id", "name", "email", "created", "updated")

# Keys a client may never set directly.
PROTECTED_FIELDS = frozenset({"id", "_id", "hashed_password", "salt", "created", "updated"})

EMAIL_RE = re.compile(r".+@.+\..+")

MIN_PASSWORD_LENGTH = 6


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class UserRecord:
    """A stored user account."""

    id: str
    name: str
    email: str
    hashed_password: str = ""
    salt: str = ""
    created: Optional[datetime] = None
    updated: Optional[datetime] = None

    def to_public(self) -> Dict[str, Any]:
        """Outbound representation: a new dict without hash or salt."""
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "created": _isoformat(self.created),
            "updated": _isoformat(self.updated),
        }

    def to_document(self) -> Dict[str, Any]:
        """Stored representation (the id is kept outside the document)."""
        return {
            "name": self.name,
            "email": self.email,
            "hashed_password": self.hashed_password,
            "salt": self.salt,
            "created": _isoformat(self.created),
            "updated": _isoformat(self.updated),
        }

    @classmethod
    def from_document(cls, id: str, document: Mapping[str, Any]) -> "UserRecord":
        return cls(
            id=id,
            name=document.get("name", ""),
            email=document.get("email", ""),
            hashed_password=document.get("hashed_password", ""),
            salt=document.get("salt", ""),
            created=_parse_datetime(document.get("created")),
            updated=_parse_datetime(document.get("updated")),
        )

    def authenticate(self, password: str, hasher: PasswordHasher) -> bool:
        return hasher.verify(password, self.salt, self.hashed_password)

    def touched(self, now: Optional[datetime] = None) -> datetime:
        """
        A new ``updated`` timestamp strictly after the current one.
        """
        now = now or utcnow()
        if self.updated is not None and now <= self.updated:
            now = self.updated + timedelta(microseconds=1)
        return now


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat().replace("+00:00", "Z")


def _parse_datetime(value: Any) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# ============================================================================
# Input handling
# ============================================================================

def clean_input(data: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """
    Copy of client input without protected keys.

    ``name`` and ``email`` are trimmed; numbers are cast to strings.
    Other keys are kept so validation can report on them, but only known
    fields are ever applied to a record.
    """
    if not isinstance(data, Mapping) or not data:
        return {}

    cleaned: Dict[str, Any] = {}
    for key, value in data.items():
        if key in PROTECTED_FIELDS:
            continue
        if key in ("name", "email"):
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                value = str(value)
            if isinstance(value, str):
                value = value.strip()
        cleaned[key] = value
    return cleaned


def _validate_fields(record: UserRecord, password: Optional[str], *, is_new: bool) -> None:
    errors: Dict[str, str] = {}

    if not isinstance(record.name, str):
        errors["name"] = "Cast to string failed for value of name"
    elif not record.name:
        errors["name"] = "Name is required"

    if not isinstance(record.email, str):
        errors["email"] = "Cast to string failed for value of email"
    elif not record.email:
        errors["email"] = "Email is required"
    elif not EMAIL_RE.fullmatch(record.email):
        errors["email"] = "Please fill a valid email address"

    if password is not None and not isinstance(password, str):
        errors["password"] = "Cast to string failed for value of password"
    elif password and len(password) < MIN_PASSWORD_LENGTH:
        errors["password"] = f"Password must be at least {MIN_PASSWORD_LENGTH} characters."
    elif (is_new or password is not None) and not record.hashed_password:
        errors["password"] = "Password is required"

    if errors:
        raise ValidationFault(errors)


def build_record(
    id: str,
    data: Optional[Mapping[str, Any]],
    hasher: PasswordHasher,
    now: Optional[datetime] = None,
) -> UserRecord:
    """
    Validate create input and derive a new record.

    Raises:
        ValidationFault: when a field is missing or malformed
    """
    fields = clean_input(data)
    password = fields.get("password")
    now = now or utcnow()

    record = UserRecord(
        id=id,
        name=fields.get("name", ""),
        email=fields.get("email", ""),
        created=now,
        updated=now,
    )
    if isinstance(password, str) and password:
        record.salt = hasher.make_salt()
        record.hashed_password = hasher.encrypt(password, record.salt)

    _validate_fields(record, password, is_new=True)
    return record


def merge_record(
    record: UserRecord,
    patch: Optional[Mapping[str, Any]],
    hasher: PasswordHasher,
    now: Optional[datetime] = None,
) -> UserRecord:
    """
    Shallow-merge ``patch`` onto a copy of ``record``.

    Absent fields keep their value, present ones overwrite it. A
    ``password`` key re-derives salt and hash. ``updated`` always moves
    forward.

    Raises:
        ValidationFault: when the merged record is invalid
    """
    fields = clean_input(patch)
    merged = replace(record)

    if "name" in fields:
        merged.name = fields["name"]
    if "email" in fields:
        merged.email = fields["email"]

    password = None
    if "password" in fields:
        password = fields["password"] if fields["password"] is not None else ""
        merged.salt = hasher.make_salt()
        merged.hashed_password = (
            hasher.encrypt(password, merged.salt) if isinstance(password, str) else ""
        )

    merged.updated = record.touched(now)
    _validate_fields(merged, password, is_new=False)
    return merged
