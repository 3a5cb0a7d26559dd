"""
Store failure → client message.
"""

import logging
import re
import sqlite3
from typing import Optional

from routina.faults import DuplicateKeyFault, ValidationFault

logger = logging.getLogger("routina.users")

_UNIQUE_RE = re.compile(r"UNIQUE constraint failed: (?:\w+\.)?(\w+)")

DEFAULT_MESSAGE = "Something went wrong"


def _unique_field(err: BaseException) -> Optional[str]:
    if isinstance(err, DuplicateKeyFault):
        return err.field
    m = _UNIQUE_RE.search(str(err))
    return m.group(1) if m else None


def _unique_message(err: BaseException) -> str:
    field = _unique_field(err)
    if not field:
        return "Unique field already exists"
    return f"{field[0].upper()}{field[1:]} already exists"


def get_error_message(err: BaseException) -> str:
    """
    Turn a store failure into the one message shown to the client.

    - uniqueness violation: ``"<Field> already exists"``
    - validation failure: the message of the last field error
    - anything else: the error's own message, or ``"Something went wrong"``
    """
    try:
        if isinstance(err, DuplicateKeyFault) or (
            isinstance(err, sqlite3.IntegrityError) and "UNIQUE" in str(err)
        ):
            return _unique_message(err)

        if isinstance(err, ValidationFault) and err.errors:
            return list(err.errors.values())[-1]

        message = getattr(err, "message", None)
        if isinstance(message, str) and message:
            return message
        return str(err) or DEFAULT_MESSAGE
    except Exception:
        logger.exception("Could not derive an error message from %r", type(err).__name__)
        return DEFAULT_MESSAGE
