"""
Input validation helpers: scan target validation and free-text sanitization.

Provides:
- ``validate_target``  -- validates and normalises a hostname or IP address.
- ``require_text``     -- rejects empty mandatory fields.
- ``sanitize_input``   -- strips dangerous characters from user-supplied text.

All helpers raise :class:`~threatscope.core.errors.InvalidInput` so callers
can reject bad input before any network I/O happens.
"""

from __future__ import annotations

import html
import ipaddress
import re

from threatscope.core.errors import InvalidInput

# ── Constants ────────────────────────────────────────────────────────────────

# RFC 1123 host labels: letters, digits and hyphens, no leading/trailing hyphen.
_HOST_LABEL_PATTERN: str = r"[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
_HOSTNAME_REGEX: re.Pattern[str] = re.compile(
    rf"^(?:{_HOST_LABEL_PATTERN}\.)*{_HOST_LABEL_PATTERN}$"
)
_MAX_HOSTNAME_LENGTH: int = 253

# Characters explicitly forbidden in general text input.
_DANGEROUS_PATTERN: re.Pattern[str] = re.compile(r"[<>&\"'`\\;|$(){}\[\]]")


# ── Target Validation ────────────────────────────────────────────────────────

def is_ip_address(value: str) -> bool:
    """Return ``True`` when *value* is an IPv4 or IPv6 literal."""
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return False
    return True


def validate_target(target: str) -> str:
    """Validate and normalise a scan target.

    The value is stripped of whitespace, lowered, and trailing dots are
    removed.  IP literals are accepted as-is; anything else must be a
    syntactically valid hostname.

    Args:
        target: The raw hostname or IP supplied by the caller.

    Returns:
        The cleaned, normalised target string.

    Raises:
        InvalidInput: If the target is empty, too long, or malformed.
    """
    if not target or not target.strip():
        raise InvalidInput("Target must not be empty.")

    cleaned: str = target.strip().lower().rstrip(".")

    if is_ip_address(cleaned):
        return cleaned

    if len(cleaned) > _MAX_HOSTNAME_LENGTH:
        raise InvalidInput(
            f"Target exceeds maximum length of {_MAX_HOSTNAME_LENGTH} characters."
        )

    if not _HOSTNAME_REGEX.match(cleaned):
        raise InvalidInput(
            f"Invalid target: '{cleaned}'. Expected a hostname "
            "(e.g. 'scanme.nmap.org') or an IP address."
        )

    return cleaned


def require_text(value: str | None, field: str) -> str:
    """Return *value* stripped, or raise when it is empty."""
    if value is None or not value.strip():
        raise InvalidInput(f"{field} must not be empty.")
    return value.strip()


# ── Input Sanitization ───────────────────────────────────────────────────────

def sanitize_input(text: str, max_length: int = 1000) -> str:
    """Sanitize arbitrary user-supplied text.

    Processing steps:
    1. Strip leading/trailing whitespace.
    2. Truncate to *max_length* characters.
    3. Remove dangerous shell / HTML metacharacters.
    4. HTML-escape any remaining special characters.

    Args:
        text: The raw input string.
        max_length: Maximum allowed length after truncation.  Defaults to 1000.

    Returns:
        The sanitized string safe for storage and display.
    """
    if not text:
        return ""

    cleaned: str = text.strip()[:max_length]
    cleaned = _DANGEROUS_PATTERN.sub("", cleaned)
    cleaned = html.escape(cleaned, quote=True)
    return cleaned
