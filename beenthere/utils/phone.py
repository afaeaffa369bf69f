"""
BeenThere — Landlord phone normalization and keyed hashing.

Phones are normalized to E.164 first so that ``054-123-4567``,
``+972 54 123 4567`` and ``972541234567`` all collapse to one identity, then
hashed with HMAC-SHA256 under the server-held secret.  Only the hex digest is
ever persisted; the raw number is never stored or logged.
"""

from __future__ import annotations

import re

import structlog
from cryptography.hazmat.primitives import hashes, hmac

from beenthere.exceptions import InvalidPhone

logger = structlog.get_logger("beenthere.phone")

_STRIP = re.compile(r"[^+\d]")
_E164 = re.compile(r"^\+[1-9]\d{6,14}$")
_LOCAL = re.compile(r"^[1-9]\d{7,8}$")

ISRAEL_CC = "972"


def normalize_phone(raw: str) -> str:
    """Return the E.164 form of ``raw`` or raise ``InvalidPhone``.

    Accepted shapes: international ``+<cc><number>``; Israeli national
    numbers with a trunk ``0`` (8 or 9 digits after it); bare 8 or 9 digit
    local numbers, which get the Israeli country code; and ``972…``
    without the plus sign.
    """
    cleaned = _STRIP.sub("", raw or "")

    if cleaned.startswith("+"):
        if _E164.match(cleaned):
            return cleaned
        raise InvalidPhone("Invalid E.164 phone number", field="landlordPhone")

    if cleaned.startswith("0"):
        national = cleaned[1:]
        if _LOCAL.match(national):
            return f"+{ISRAEL_CC}{national}"
        raise InvalidPhone("Invalid Israeli phone number", field="landlordPhone")

    if cleaned.startswith(ISRAEL_CC) and len(cleaned) == 12:
        return f"+{cleaned}"

    if _LOCAL.match(cleaned):
        return f"+{ISRAEL_CC}{cleaned}"

    raise InvalidPhone(
        "Unsupported phone number format; use an Israeli number or E.164",
        field="landlordPhone",
    )


class PhoneHasher:
    """Deterministic keyed one-way mapping from a phone to a landlord key.

    The secret is injected once at construction (see ``get_phone_hasher``
    in ``beenthere.api.dependencies``) and never read from ambient state.
    """

    def __init__(self, secret: str | bytes) -> None:
        key = secret.encode("utf-8") if isinstance(secret, str) else secret
        if not key:
            raise ValueError("Phone hash secret must not be empty")
        self._key = key

    def hash_e164(self, e164: str) -> str:
        mac = hmac.HMAC(self._key, hashes.SHA256())
        mac.update(e164.encode("utf-8"))
        return mac.finalize().hex()

    def hash(self, raw_phone: str) -> str:
        """Normalize and hash ``raw_phone`` into a 64-char hex landlord key."""
        digest = self.hash_e164(normalize_phone(raw_phone))
        logger.debug("landlord_phone_hashed", key_prefix=digest[:8])
        return digest
