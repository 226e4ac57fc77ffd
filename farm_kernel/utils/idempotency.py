"""
Idempotency key generation utilities.

Idempotency keys make a retried ``post`` find the posting group it already
created.  Keys are unique per tenant on ``posting_groups``.
"""

from datetime import date
from uuid import UUID


def generate_idempotency_key(*parts: object) -> str:
    """
    Join key components with ``:``.

    Example:
        >>> generate_idempotency_key("machinery_charge", charge_id, "post")
        "machinery_charge:550e8400-e29b-41d4-a716-446655440000:post"
    """
    if not parts:
        raise ValueError("An idempotency key needs at least one component")
    return ":".join("" if p is None else str(p) for p in parts)


def default_posting_key(document_type: str, document_id: UUID | str) -> str:
    """Key used when the caller does not supply one: ``<type>:<id>:post``."""
    return generate_idempotency_key(document_type, document_id, "post")


def reversal_key(original_posting_group_id: UUID | str, posting_date: date) -> str:
    """Key of the reversal of a posting group on a given date."""
    return generate_idempotency_key("reversal", original_posting_group_id, posting_date.isoformat())


def parse_idempotency_key(key: str) -> tuple[str, str, str]:
    """
    Split a ``<type>:<id>:<action>`` key.

    Raises:
        ValueError: If key format is invalid.
    """
    parts = key.split(":", 2)
    if len(parts) != 3:
        raise ValueError(f"Invalid idempotency key format: {key}")
    return parts[0], parts[1], parts[2]
