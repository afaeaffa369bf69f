"""
BeenThere — Domain exceptions.

Every error raised by the core is a ``BeenThereError``.  The HTTP boundary in
``beenthere.main`` maps each ``kind`` to a status code; services never build
HTTP responses themselves.
"""

from __future__ import annotations


class BeenThereError(Exception):
    """Base class for all per-request failures raised by the core."""

    code: str = "error"
    kind: str = "validation"  # validation | not_found | forbidden | conflict | unavailable
    retryable: bool = False

    def __init__(self, message: str, field: str | None = None) -> None:
        self.message = message
        self.field = field
        super().__init__(message)

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "field": self.field,
            "retryable": self.retryable,
        }


# ── Caller faults (rejected before any write) ─────────────────────────────


class InvalidReference(BeenThereError):
    """Neither an external place id nor a complete coordinate pair."""

    code = "invalid_reference"


class InvalidScore(BeenThereError):
    """A facet score is missing, unknown, non-integer or outside [1, 10]."""

    code = "invalid_score"


class EmptyRating(BeenThereError):
    code = "empty_rating"


class SelfRating(BeenThereError):
    code = "self_rating"


class InvalidTarget(BeenThereError):
    code = "invalid_target"


class InvalidAction(BeenThereError):
    code = "invalid_action"


class InvalidPhone(BeenThereError):
    code = "invalid_phone"


class InvalidComment(BeenThereError):
    code = "invalid_comment"


class InvalidCursor(BeenThereError):
    code = "invalid_cursor"


class EmptyBody(BeenThereError):
    code = "empty_body"


class MessageTooLong(BeenThereError):
    code = "message_too_long"


class InvalidListing(BeenThereError):
    code = "invalid_listing"


class EmailTaken(BeenThereError):
    code = "email_taken"
    kind = "conflict"


# ── Authorization / state faults ──────────────────────────────────────────


class NotAMember(BeenThereError):
    code = "not_a_member"
    kind = "forbidden"


class MatchNotFound(BeenThereError):
    code = "match_not_found"
    kind = "not_found"


class PlaceNotFound(BeenThereError):
    code = "place_not_found"
    kind = "not_found"


class ListingNotFound(BeenThereError):
    code = "listing_not_found"
    kind = "not_found"


class UserNotFound(BeenThereError):
    code = "user_not_found"
    kind = "not_found"


# ── Transient ─────────────────────────────────────────────────────────────


class StoreUnavailable(BeenThereError):
    """The store timed out or dropped the connection.

    The failed operation left no partial effect, so the caller may retry.
    """

    code = "store_unavailable"
    kind = "unavailable"
    retryable = True
