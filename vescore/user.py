"""VES users: parsing user references and syncing fields with the API."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Optional

from .util import ErrorKind, Transport, VESError, stricmp

__all__ = ["User"]

_BUF_LIMIT = 1020
_TERMINATORS = frozenset(b",;?#")
_WHITESPACE = frozenset(b" \t\n\r")
_QUOTE = ord('"')
_BACKSLASH = ord("\\")
_PERCENT = ord("%")
_LT = ord("<")
_GT = ord(">")
_AT = ord("@")
_SPACE = ord(" ")


def _hex_value(c: int) -> Optional[int]:
    if 0x30 <= c <= 0x39:
        return c - 0x30
    if 0x41 <= c <= 0x46:
        return c - 0x41 + 10
    if 0x61 <= c <= 0x66:
        return c - 0x61 + 10
    return None


def _hex_pair(raw: bytes, pos: int) -> Optional[int]:
    if pos + 1 >= len(raw):
        return None
    hi = _hex_value(raw[pos])
    lo = _hex_value(raw[pos + 1])
    if hi is None or lo is None:
        return None
    return (hi << 4) | lo


def _as_int(value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return 0
    return 0


def _as_str(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list)):
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


@dataclass
class User:
    """A VES user, identified by id or by e-mail address."""

    id: int = 0
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    @classmethod
    def from_path(cls, path: str) -> tuple["User", str]:
        """Parse a user reference such as ``First Last <user@host>``.

        Parsing stops at an unquoted ``,``, ``;``, ``?`` or ``#``. Returns the
        user and the remainder of ``path`` starting at that terminator.
        Raises :class:`ValueError` if no valid e-mail address is present.
        """
        raw = path.encode("utf-8")
        buf = bytearray()
        email_at: Optional[int] = None
        lastw: Optional[int] = None
        writing = True
        quote = ang = at = False
        sp = 0
        pos = 0
        end = len(raw)
        while True:
            c = raw[pos] if pos < len(raw) else 0
            pos += 1
            if c == 0 or (c in _TERMINATORS and not quote):
                end = pos - 1
                break
            if c == _QUOTE:
                quote = not quote
                continue
            if c == _BACKSLASH:
                if pos < len(raw) and raw[pos] != 0:
                    c = raw[pos]
                    pos += 1
                else:
                    continue
            elif c == _PERCENT:
                decoded = _hex_pair(raw, pos)
                if decoded is not None:
                    c = decoded
                    pos += 2

            if c == 0 or c == _QUOTE:
                continue
            if c == _LT:
                if not quote:
                    ang = True
                    sp = 0
                    if writing:
                        buf.append(0)
                        email_at = len(buf)
                        at = False
                    continue
            elif c == _GT:
                if not quote:
                    ang = False
                    if email_at is not None and writing:
                        if email_at == len(buf) or not at:
                            raise ValueError(f"invalid e-mail address in {path!r}")
                        writing = False
                    continue
            elif c == _AT:
                at = True
            elif c in _WHITESPACE:
                if not ang and sp > 1:
                    sp = 1
                continue

            if writing:
                if len(buf) >= _BUF_LIMIT:
                    raise ValueError("user reference is too long")
                if sp == 1:
                    buf.append(_SPACE)
                    lastw = len(buf)
                sp = 2
                buf.append(c)

        email_is_buf = False
        if email_at is None:
            if at and lastw is None:
                email_is_buf = True
            else:
                raise ValueError(f"no e-mail address in {path!r}")
        if lastw is not None:
            buf[lastw - 1] = 0

        def segment(start: int) -> str:
            stop = buf.find(0, start)
            return bytes(buf[start : stop if stop >= 0 else len(buf)]).decode(
                "utf-8", errors="replace"
            )

        email = segment(0 if email_is_buf else email_at)  # type: ignore[arg-type]
        first = None if email_is_buf or not buf or buf[0] == 0 else segment(0)
        last = segment(lastw) if lastw is not None else None
        user = cls(email=email, first_name=first, last_name=last)
        return user, raw[end:].decode("utf-8")

    @classmethod
    def from_json(cls, data: Optional[Mapping[str, Any]]) -> Optional["User"]:
        """Build a user from an API object; ``None`` gives ``None``."""
        if data is None:
            return None
        user = cls()
        user.merge_json(data)
        return user

    def merge_json(self, data: Any) -> None:
        """Fill in fields that are still unset from an API object."""
        if not isinstance(data, Mapping):
            return
        if not self.id:
            self.id = _as_int(data.get("id"))
        if self.email is None:
            self.email = _as_str(data.get("email"))
        if self.first_name is None:
            self.first_name = _as_str(data.get("firstName"))
        if self.last_name is None:
            self.last_name = _as_str(data.get("lastName"))

    def to_json(self) -> Optional[dict]:
        """The API reference for this user: by id if known, otherwise by e-mail."""
        if self.id:
            return {"id": self.id}
        if self.email is not None:
            data: dict[str, Any] = {"email": self.email}
            if self.first_name is not None:
                data["firstName"] = self.first_name
            if self.last_name is not None:
                data["lastName"] = self.last_name
            return data
        return None

    def load_fields(self, transport: Transport) -> "User":
        """Fetch whichever of id and e-mail is missing, plus the names."""
        if self.id and self.email is not None:
            return self
        if not self.id and self.email is None:
            raise VESError(ErrorKind.PARAM, "User has neither id nor email")
        if self.id:
            uri = f"users/{self.id}?fields=email,firstName,lastName"
            body = None
        else:
            uri = "users?fields=id,firstName,lastName"
            body = dict(self.to_json() or {})
            body["$op"] = "fetch"
        self.merge_json(transport.rest(uri, body))
        return self

    def name(self) -> Optional[str]:
        """First and last name joined by a space, or ``None`` if neither is known."""
        if self.first_name is None and self.last_name is None:
            return None
        first = self.first_name or ""
        last = self.last_name or ""
        if last:
            return f"{first} {last}" if first else last
        return first

    def copy(self) -> "User":
        """A new user carrying only the id."""
        if not self.id:
            raise VESError(ErrorKind.PARAM, "Only a user with an id can be copied")
        return User(id=self.id)

    def matches(self, other: Optional["User"]) -> bool:
        """Whether both refer to the same user, by id or case-insensitive e-mail."""
        if other is None:
            return False
        if self.id and other.id:
            return self.id == other.id
        if self.email is not None and other.email is not None:
            return stricmp(self.email, other.email) == 0
        return False