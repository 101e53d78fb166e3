"""
detector_gateway.services.validation

Semantic validation of classification requests.

Responsibilities:
- Bound content length and require a minimum number of words.
- Restrict the mode to the closed set of analysis modes.
- Accept only http(s) locators that point at public hosts (no loopback, private,
  link-local or otherwise non-routable literals).
"""

from __future__ import annotations

import ipaddress
import string
from dataclasses import dataclass
from typing import Literal
from urllib.parse import urlsplit

from detector_gateway.errors import ValidationFailedError
from detector_gateway.settings import Settings

Mode = Literal["quick", "deep"]
MODES: frozenset[str] = frozenset({"quick", "deep"})

_LOCAL_HOSTNAMES = frozenset({"localhost", "localhost.localdomain", "ip6-localhost"})


@dataclass(frozen=True, slots=True)
class ValidatedRequest:
    locator: str
    content: str
    mode: Mode
    word_count: int


def count_words(text: str) -> int:
    return len(text.split())


def validate_request(*, locator: str, content: str, mode: str, settings: Settings) -> ValidatedRequest:
    if not content:
        raise ValidationFailedError("Text content is required")
    if not locator:
        raise ValidationFailedError("URL is required")
    if not mode:
        raise ValidationFailedError("Analysis mode is required")

    _validate_text(content, settings)
    _validate_locator(locator, settings)
    if mode not in MODES:
        raise ValidationFailedError('Mode must be either "quick" or "deep"')

    return ValidatedRequest(
        locator=locator,
        content=content,
        mode=mode,  # type: ignore[arg-type]
        word_count=count_words(content),
    )


def _validate_text(text: str, settings: Settings) -> None:
    trimmed = text.strip()
    if not trimmed:
        raise ValidationFailedError("Text cannot be empty")
    if len(trimmed) < settings.min_text_chars:
        raise ValidationFailedError(
            f"Text must be at least {settings.min_text_chars} characters long"
        )
    if len(trimmed) > settings.max_text_chars:
        raise ValidationFailedError(f"Text cannot exceed {settings.max_text_chars} characters")
    if count_words(trimmed) < settings.min_words:
        raise ValidationFailedError(f"Text must contain at least {settings.min_words} words")


def _validate_locator(locator: str, settings: Settings) -> None:
    if len(locator) > settings.max_url_chars:
        raise ValidationFailedError(f"URL cannot exceed {settings.max_url_chars} characters")

    try:
        parts = urlsplit(locator)
        hostname = parts.hostname
    except ValueError:
        raise ValidationFailedError("Invalid URL format") from None

    if parts.scheme not in ("http", "https"):
        raise ValidationFailedError("URL must use HTTP or HTTPS protocol")
    if not hostname:
        raise ValidationFailedError("URL must have a valid hostname")
    if is_non_public_host(hostname):
        raise ValidationFailedError("URL cannot be localhost or private IP address")


def is_non_public_host(hostname: str) -> bool:
    host = hostname.lower().rstrip(".")
    if host in _LOCAL_HOSTNAMES or host.endswith(".localhost"):
        return True

    try:
        addr = ipaddress.ip_address(host)
    except ValueError:
        if not _ends_in_number(host):
            # A DNS name; resolution is not attempted here.
            return False
        try:
            addr = parse_numeric_ipv4(host)
        except ValueError:
            # Numeric but not a valid address; never treat it as public.
            return True

    if isinstance(addr, ipaddress.IPv6Address) and addr.ipv4_mapped is not None:
        addr = addr.ipv4_mapped
    return not addr.is_global or addr.is_multicast


def _ends_in_number(host: str) -> bool:
    last = host.split(".")[-1]
    if last.isdigit():
        return True
    return last[:2] == "0x" and all(c in string.hexdigits for c in last[2:])


def _parse_ipv4_part(part: str) -> int:
    if not part:
        raise ValueError("empty IPv4 part")
    if part[:2] == "0x":
        return int(part[2:], 16) if part[2:] else 0
    if len(part) > 1 and part.startswith("0"):
        return int(part[1:], 8)
    if not part.isdigit():
        raise ValueError(f"invalid IPv4 part {part!r}")
    return int(part)


def parse_numeric_ipv4(host: str) -> ipaddress.IPv4Address:
    """Canonicalize the shorthand IPv4 forms browsers accept.

    `127.1`, `2130706433`, `0x7f000001` and `0177.0.0.1` all name 127.0.0.1. Parts may be
    decimal, octal (leading 0) or hex (0x); the last part fills the remaining bytes.
    """
    parts = host.split(".")
    if len(parts) > 4:
        raise ValueError("too many IPv4 parts")
    numbers = [_parse_ipv4_part(p) for p in parts]
    *head, last = numbers
    if any(n > 255 for n in head) or last >= 256 ** (5 - len(numbers)):
        raise ValueError("IPv4 part out of range")

    value = last
    for i, n in enumerate(head):
        value += n << (8 * (3 - i))
    return ipaddress.IPv4Address(value)


# --- Module Notes -----------------------------------------------------------
# Validation runs before any quota or cache access, so rejected requests have no side effects.
