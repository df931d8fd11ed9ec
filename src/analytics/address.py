"""EVM address validation and canonical form."""

import re

from src.analytics.exceptions import ValidationError

ADDRESS_RE = re.compile(r"^0[xX][0-9a-fA-F]{40}$")


def is_valid_address(address: object) -> bool:
    return isinstance(address, str) and ADDRESS_RE.match(address.strip()) is not None


def normalize_address(address: object) -> str:
    """Return the canonical lowercase form of a 20-byte hex address.

    Idempotent and case-insensitive. Raises ValidationError on malformed input.
    """
    if not isinstance(address, str):
        raise ValidationError("Address must be a string", field="address")
    candidate = address.strip()
    if not ADDRESS_RE.match(candidate):
        raise ValidationError(
            "Invalid address: expected 0x followed by 40 hex characters",
            field="address",
        )
    return "0x" + candidate[2:].lower()


def short(address: str) -> str:
    """Log-friendly prefix of an address."""
    return address[:10]
