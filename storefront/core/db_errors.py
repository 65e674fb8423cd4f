"""Shared helpers for database error handling."""

from __future__ import annotations

from sqlalchemy.exc import IntegrityError


def integrity_message(exc: IntegrityError) -> str:
    """Pick a user-safe message for a constraint violation.

    Covers the MySQL and SQLite wordings; anything else gets a generic text.
    """

    raw = str(getattr(exc, "orig", exc)).lower()
    if "not null" in raw or "not-null" in raw or "cannot be null" in raw:
        return "Required fields were not filled in correctly."
    if "unique" in raw or "duplicate" in raw:
        return "A record with this information already exists."
    if "foreign key" in raw:
        return "The operation cannot be completed because it references invalid data."
    return "Could not process the operation. Check that the data provided is correct."
