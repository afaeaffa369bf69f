"""
BeenThere — Opaque keyset cursors.

A cursor is the url-safe base64 form of the last row's UUID.  Pages are
ordered by ``(created_at, id)`` descending, so the next page is every row
strictly before that anchor.
"""

from __future__ import annotations

import base64
import binascii
import uuid

from sqlalchemy import and_, or_

from beenthere.exceptions import InvalidCursor


def encode_cursor(row_id: uuid.UUID) -> str:
    return base64.urlsafe_b64encode(row_id.bytes).decode().rstrip("=")


def decode_cursor(token: str) -> uuid.UUID:
    """Return the anchor id carried by ``token`` or raise ``InvalidCursor``."""
    padding = "=" * (-len(token) % 4)
    try:
        raw = base64.urlsafe_b64decode(token + padding)
    except (binascii.Error, ValueError) as exc:
        raise InvalidCursor("Malformed cursor", field="cursor") from exc
    if len(raw) != 16:
        raise InvalidCursor("Malformed cursor", field="cursor")
    return uuid.UUID(bytes=raw)


def before_anchor(created_col, id_col, anchor_created, anchor_id):
    """``(created_col, id_col) < (anchor_created, anchor_id)`` for newest-first paging."""
    return or_(
        created_col < anchor_created,
        and_(created_col == anchor_created, id_col < anchor_id),
    )
