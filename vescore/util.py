"""Shared helpers: errors, transport protocol, base64, VES URIs, dates, algorithm lookup."""

from __future__ import annotations

import base64
import enum
import re
from collections.abc import Mapping
from typing import Any, Optional, Protocol

__all__ = [
    "ErrorKind",
    "VESError",
    "Transport",
    "b64decode",
    "b64encode",
    "b64encode_web",
    "build_uri",
    "date_to_usec",
    "stricmp",
    "lookup_algo",
]


class ErrorKind(enum.Enum):
    """Categories of failure reported by the VES layer."""

    PARAM = "param"
    UNLOCK = "unlock"
    INCORRECT = "incorrect"
    UNSUPPORTED = "unsupported"
    NOTFOUND = "notfound"
    DENIED = "denied"
    ASSERT = "assert"


class VESError(Exception):
    """An error with a category and a human readable message."""

    def __init__(self, kind: ErrorKind, message: str) -> None:
        super().__init__(f"[{kind.name}] {message}")
        self.kind = kind
        self.message = message


class Transport(Protocol):
    """Something that can perform a VES REST call."""

    def rest(self, uri: str, body: Optional[dict]) -> dict:
        """Send ``body`` (or nothing for a GET) to ``uri`` and return the decoded reply.

        Implementations raise :class:`VESError` when the call fails.
        """


# Lenient decoder table: both the standard and the URL-safe alphabets map.
_B64_VALUES: dict[int, int] = {}
for _i, _ch in enumerate(b"ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789"):
    _B64_VALUES[_ch] = _i
_B64_VALUES[ord("+")] = 62
_B64_VALUES[ord("-")] = 62
_B64_VALUES[ord("/")] = 63
_B64_VALUES[ord("_")] = 63


def b64decode(text: str | bytes) -> bytes:
    """Decode base64 in either alphabet, skipping any character that is not part of it."""
    raw = text.encode("latin-1", errors="ignore") if isinstance(text, str) else bytes(text)
    out = bytearray()
    acc = 0
    bits = 0
    for ch in raw:
        if ch == 0:
            break
        value = _B64_VALUES.get(ch)
        if value is None:
            continue
        acc = (acc << 6) | value
        bits += 6
        if bits >= 8:
            bits -= 8
            out.append((acc >> bits) & 0xFF)
            acc &= (1 << bits) - 1
    return bytes(out)


def b64encode(data: bytes) -> str:
    """Standard base64 with '=' padding."""
    return base64.b64encode(bytes(data)).decode("ascii")


def b64encode_web(data: bytes) -> str:
    """URL-safe base64 without padding."""
    return base64.urlsafe_b64encode(bytes(data)).rstrip(b"=").decode("ascii")


_URI_LIMIT = 1020
_HEX = b"0123456789ABCDEF"


def _uri_safe(c: int) -> bool:
    return (
        0x2C <= c <= 0x2E  # , - .
        or 0x30 <= c <= 0x3B  # 0-9 : ;
        or 0x40 <= c <= 0x5A  # @ A-Z
        or 0x5E <= c <= 0x7E  # ^ _ ` a-z { | } ~
        or c >= 0x80
    )


def build_uri(*args: Optional[str]) -> str:
    """Build a ``ves://`` URI from path components, percent-escaping unsafe bytes.

    ``None`` components leave an empty path segment. The result is capped at
    roughly one kilobyte, as the wire format expects.
    """
    out = bytearray(b"ves:/")
    for arg in args:
        out.append(ord("/"))
        if len(out) >= _URI_LIMIT:
            break
        if arg is None:
            continue
        raw = arg.encode("utf-8") if isinstance(arg, str) else bytes(arg)
        for c in raw:
            if c == 0 or len(out) >= _URI_LIMIT:
                break
            if _uri_safe(c):
                out.append(c)
            else:
                out += bytes((ord("%"), _HEX[c >> 4], _HEX[c & 0x0F]))
    return out.decode("utf-8", errors="replace")


_DATE_RE = re.compile(
    r"\s*(\d+)-\s*(\d+)-\s*(\d+)"
    r"(?:T\s*(\d+)(?::\s*(\d+)(?::\s*(\d+)"
    r"(\s*[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?)?)?)?)?"
)


def _cdiv(a: int, b: int) -> int:
    """Integer division truncating toward zero."""
    q = abs(a) // abs(b)
    return q if (a >= 0) == (b >= 0) else -q


def date_to_usec(date: Optional[str]) -> int:
    """Convert an ISO-8601 UTC timestamp to microseconds since the Unix epoch.

    Returns 0 when the date is missing or does not start with ``Y-M-D``.
    """
    if not date:
        return 0
    m = _DATE_RE.match(date)
    if not m:
        return 0
    year, mon, mday = (int(m.group(k)) & 0xFFFF for k in (1, 2, 3))
    hour = int(m.group(4) or 0) & 0xFFFF
    minute = int(m.group(5) or 0) & 0xFFFF
    sec = int(m.group(6) or 0) & 0xFFFF
    frac = float(m.group(7)) if m.group(7) else 0.0

    y = year - (0 if mon >= 3 else 1)
    mm = mon - 3 if mon >= 3 else mon + 9
    days = (
        _cdiv(y * 1461, 4)
        - _cdiv(1968 * 1461, 4)
        + _cdiv(mm * 3059 + 51, 100)
        + mday
        - 657
        - _cdiv(_cdiv(y + 100, 100) * 3, 4)
    )
    seconds = ((days * 24 + hour) * 60 + minute) * 60 + sec
    return seconds * 1000000 + int(frac * 1000000)


def _ascii_lower(c: int) -> int:
    return c + 0x20 if 0x41 <= c <= 0x5A else c


def stricmp(a: str, b: str) -> int:
    """Compare two strings ignoring ASCII case; returns -1, 0 or 1."""
    ba = a.encode("utf-8")
    bb = b.encode("utf-8")
    for c1, c2 in zip(ba, bb):
        d = _ascii_lower(c1) - _ascii_lower(c2)
        if d:
            return 1 if d > 0 else -1
    if len(ba) == len(bb):
        return 0
    return -1 if len(ba) < len(bb) else 1


_ALGO_PREFIX_MAX = 24


def lookup_algo(name: Optional[str], registry: Mapping[str, Any]) -> Any:
    """Find an algorithm by name; anything after a ':' is an option and is ignored."""
    if name is None:
        return None
    prefix, sep, _ = name.partition(":")
    if sep and len(prefix.encode("utf-8")) >= _ALGO_PREFIX_MAX:
        return None
    return registry.get(prefix)