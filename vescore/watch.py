"""Watching event streams of vault keys, vault items, users and domains."""

from __future__ import annotations

import enum
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass
from typing import Any, Optional

from .util import ErrorKind, Transport, VESError

__all__ = [
    "WatchFlag",
    "WatchSpec",
    "Watch",
    "WATCH_TIMEOUT",
    "VAULT_KEY_EVENTS",
    "VAULT_ITEM_EVENTS",
    "USER_EVENTS",
    "vault_key_events",
    "user_events",
    "domain_events",
    "vault_item_events",
]


class WatchFlag(enum.IntFlag):
    """Direction and mode of an event watch."""

    REV = 0x01
    POLL = 0x02
    NOLOAD = 0x04


WATCH_TIMEOUT = 900_000_000
"""Default long-poll timeout, in microseconds."""


@dataclass(frozen=True)
class WatchSpec:
    """Which field to request and which details to include for each event."""

    field: str
    details: str


VAULT_KEY_EVENTS = WatchSpec(
    "events", "(vaultItem(id,type,file(externals)),user,creator,session)"
)
VAULT_ITEM_EVENTS = WatchSpec(
    "events",
    "(vaultKey(id,type,algo,publicKey,user,creator),vaultItem(id,type,file(externals)),user,creator)",
)
USER_EVENTS = WatchSpec(
    "events",
    "(vaultKey(id,type,algo,publicKey,user,creator),vaultItem(id,type,file(externals)),"
    "user,creator,session)",
)

EventFactory = Callable[["Watch", Any], Any]
TimeoutFn = Callable[["Watch"], int]


def _event_id(event: Any) -> int:
    raw = event.get("id") if isinstance(event, Mapping) else getattr(event, "id", 0)
    try:
        return int(raw or 0)
    except (TypeError, ValueError):
        return 0


class Watch:
    """A cursor over an event stream, loading pages and long-polling as needed.

    ``make_event`` turns each event object from the API into the value the
    watch yields; returning ``None`` skips the event.
    """

    def __init__(
        self,
        transport: Transport,
        spec: WatchSpec,
        uri: str,
        make_event: EventFactory,
        api_url: str = "",
        poll_url: str = "",
        timeout_fn: Optional[TimeoutFn] = None,
    ) -> None:
        self.transport = transport
        self.spec = spec
        self.uri = uri
        self.make_event = make_event
        self.api_url = api_url
        self.poll_url = poll_url
        self.timeout_fn = timeout_fn
        self.events: Optional[list] = None
        self.first_id = 0
        self.last_id = 0
        self.flags = WatchFlag(0)
        self._pos: Optional[int] = None

    def start(self, start: int) -> bool:
        """Load events from id ``start``, or the last ``-start`` events if negative."""
        if start >= 0:
            return self.load(start, 0, 0) is not None
        return self.load(0, -start, WatchFlag.REV) is not None

    def load(self, start: int, count: int, flags: int) -> Optional[list]:
        """Load one page of events; ``None`` if the reply holds none and no poll is due."""
        self.events = None
        self._pos = None
        flags = int(flags)
        fpoll = bool(flags & self.flags & WatchFlag.POLL) and not flags & WatchFlag.REV
        poll = 0
        if fpoll:
            poll = self.timeout_fn(self) if self.timeout_fn else WATCH_TIMEOUT
        base = self.poll_url if poll > 0 else self.api_url
        url = f"{base}{self.uri}?fields={self.spec.field}{self.spec.details}%5B"
        if start > 0:
            url += str(start)
        url += "-" if flags & WatchFlag.REV else "%2B"
        if count > 0:
            url += str(count)
        url += "%5D"
        if poll > 0:
            url += f"&poll={poll // 1000000}.{poll % 1000000:06d}"

        response = self.transport.rest(url, None)
        found = response.get(self.spec.field) if isinstance(response, Mapping) else None
        records = found if isinstance(found, list) else []
        if (
            not records
            and not fpoll
            and flags & (WatchFlag.POLL | WatchFlag.REV) == WatchFlag.POLL
        ):
            self.flags |= WatchFlag.POLL
            poll = 1
        if records or poll > 0:
            if flags & WatchFlag.REV:
                self.flags |= WatchFlag.REV
            else:
                self.flags = WatchFlag(int(self.flags) & ~int(WatchFlag.REV))
            events = []
            for record in records:
                event = self.make_event(self, record)
                if event is not None:
                    events.append(event)
            self.events = events
        return self.events

    def _traverse(self, backwards: bool) -> None:
        count = len(self.events or ())
        if backwards:
            pos = count - 1 if self._pos is None else self._pos - 1
            self._pos = pos if pos >= 0 else None
        else:
            pos = 0 if self._pos is None else self._pos + 1
            self._pos = pos if pos < count else None

    def next(self, flags: int = 0) -> Any:
        """The next event in the direction ``flags`` asks for, or ``None`` at the end."""
        flags = int(flags)
        backwards = bool((flags ^ int(self.flags)) & WatchFlag.REV)
        while True:
            if self.events is not None:
                self._traverse(backwards)
            if self._pos is not None:
                break
            if flags & WatchFlag.REV:
                start = self.first_id - 1 if self.first_id > 0 else 0
            else:
                start = self.last_id + 1
            if self.load(start, 0, flags) is None:
                break
        if self._pos is None or self.events is None:
            return None
        event = self.events[self._pos]
        event_id = _event_id(event)
        if flags & WatchFlag.REV:
            if event_id > 0:
                if not self.first_id or event_id < self.first_id:
                    self.first_id = event_id
                if not self.last_id:
                    self.last_id = event_id
        else:
            if event_id > self.last_id:
                self.last_id = event_id
            if not self.first_id and event_id > 0:
                self.first_id = event_id
        return event

    def prev(self, flags: int = 0) -> Any:
        """The previous (older) event, or ``None`` at the beginning."""
        return self.next(int(flags) | WatchFlag.REV)

    def __iter__(self) -> Iterator[Any]:
        while (event := self.next(0)) is not None:
            yield event


def vault_key_events(
    transport: Transport,
    key_id: int,
    make_event: EventFactory,
    api_url: str = "",
    poll_url: str = "",
) -> Watch:
    """Watch the events of a vault key."""
    if not key_id:
        raise VESError(ErrorKind.PARAM, "No vault key to watch")
    return Watch(transport, VAULT_KEY_EVENTS, f"vaultKeys/{key_id}", make_event, api_url, poll_url)


def user_events(
    transport: Transport, make_event: EventFactory, api_url: str = "", poll_url: str = ""
) -> Watch:
    """Watch the events of the current user."""
    return Watch(transport, USER_EVENTS, "me", make_event, api_url, poll_url)


def domain_events(
    transport: Transport,
    domain: Optional[str],
    make_event: EventFactory,
    api_url: str = "",
    poll_url: str = "",
) -> Watch:
    """Watch the events of an app domain."""
    if not domain:
        raise VESError(ErrorKind.PARAM, "No domain to watch")
    return Watch(transport, USER_EVENTS, f"domains/{domain[:48]}", make_event, api_url, poll_url)


def vault_item_events(
    transport: Transport,
    item_id: int,
    make_event: EventFactory,
    api_url: str = "",
    poll_url: str = "",
) -> Watch:
    """Watch the events of a vault item."""
    return Watch(
        transport, VAULT_ITEM_EVENTS, f"vaultItems/{item_id}", make_event, api_url, poll_url
    )