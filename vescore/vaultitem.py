"""Vault items: encrypted values shared through vault entries."""

from __future__ import annotations

import enum
import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

from .user import User
from .util import ErrorKind, VESError

__all__ = [
    "ItemType",
    "ShareFlag",
    "ShareKey",
    "VaultItem",
    "type_str",
    "type_from_str",
]


class ItemType(enum.IntEnum):
    """Kinds of content a vault item can hold."""

    STRING = 0
    FILE = 1
    PASSWORD = 2
    SECRET = 3


_TYPE_NAMES = ("string", "file", "password", "secret")


class ShareFlag(enum.IntFlag):
    """Flags that steer sharing and track the state of a vault item."""

    CLN = 0x01
    PRI = 0x02
    ADD = 0x10
    UPD = 0x20
    META = 0x0100
    IGN = 0x4000
    DEL = 0x8000
    SET = ADD | CLN


_DEFAULT_CIPHER = "AES256CFB"
_ALGO_NAME_LIMIT = 64


def type_str(item_type: int) -> str:
    """The wire name of an item type."""
    try:
        return _TYPE_NAMES[ItemType(item_type)]
    except ValueError:
        raise ValueError(f"unknown vault item type {item_type!r}") from None


def type_from_str(name: str) -> ItemType:
    """The item type for a wire name."""
    try:
        return ItemType(_TYPE_NAMES.index(name))
    except ValueError:
        raise ValueError(f"unknown vault item type {name!r}") from None


def _as_int(value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return 0
    return 0


class _Decryptor(Protocol):
    def decrypt(self, encdata: str) -> Optional[bytes]:
        ...


@dataclass
class ShareKey:
    """A vault key as referenced by a vault entry."""

    id: int = 0
    type: Optional[str] = None
    algo: Optional[str] = None
    public_key: Optional[str] = None
    user: Optional[User] = None
    external: Any = None
    data: dict = field(default_factory=dict)

    @classmethod
    def from_json(cls, data: Any) -> Optional["ShareKey"]:
        """Build a key reference from an API object; non-objects give ``None``."""
        if not isinstance(data, Mapping):
            return None
        user_data = data.get("user")
        return cls(
            id=_as_int(data.get("id")),
            type=data.get("type") if isinstance(data.get("type"), str) else None,
            algo=data.get("algo") if isinstance(data.get("algo"), str) else None,
            public_key=data.get("publicKey") if isinstance(data.get("publicKey"), str) else None,
            user=User.from_json(user_data) if isinstance(user_data, Mapping) else None,
            external=data.get("externals"),
            data=dict(data),
        )


def _key_json(key: ShareKey) -> dict:
    return dict(key.data) if key.data else {"id": key.id}


@dataclass
class VaultItem:
    """An encrypted item together with the keys it is shared with."""

    id: int = 0
    type: Optional[ItemType] = ItemType.STRING
    flags: ShareFlag = ShareFlag.ADD | ShareFlag.UPD
    value: Optional[bytes] = None
    file: Optional[dict] = None
    vault_key: Optional[ShareKey] = None
    meta: Any = None
    entries: Optional[list] = None
    share: list[ShareKey] = field(default_factory=list)

    @classmethod
    def from_json(
        cls, data: Any, unlocked: Optional[Mapping[int, _Decryptor]] = None
    ) -> "VaultItem":
        """Build an item from an API object.

        ``unlocked`` maps vault key ids to unlocked keys; the first entry whose
        key is unlocked and decrypts successfully supplies the value.
        """
        if not isinstance(data, Mapping):
            raise VESError(ErrorKind.PARAM, "Vault item data is not an object")
        try:
            item_type: Optional[ItemType] = type_from_str(data.get("type"))
        except ValueError:
            item_type = None
        item = cls(
            id=_as_int(data.get("id")),
            type=item_type,
            flags=ShareFlag.DEL if data.get("deleted") else ShareFlag(0),
            meta=data.get("meta"),
        )
        if "file" in data and data["file"] is not None:
            item.file = data["file"] if isinstance(data["file"], dict) else {}
        elif "vaultKey" in data and data["vaultKey"] is not None:
            item.vault_key = ShareKey.from_json(data["vaultKey"])

        entries = data.get("vaultEntries")
        if isinstance(entries, list):
            for entry in entries:
                entry = entry if isinstance(entry, Mapping) else {}
                key = ShareKey.from_json(entry.get("vaultKey")) or ShareKey()
                item.share.append(key)
                if item.value is not None or not unlocked:
                    continue
                decryptor = unlocked.get(key.id) if key.id else None
                encdata = entry.get("encData")
                if decryptor is None or not isinstance(encdata, str):
                    continue
                try:
                    plain = decryptor.decrypt(encdata)
                except VESError:
                    plain = None
                if plain is not None:
                    item.value = bytes(plain)
        return item

    def to_json(self) -> dict:
        """The API object for posting this item; pending entries are handed over."""
        data: dict[str, Any] = {}
        has_object = self.file is not None or self.vault_key is not None
        if self.id and (not has_object or not (self.flags & ShareFlag.CLN)):
            data["id"] = self.id
        data["type"] = type_str(self.type) if self.type is not None else None
        if self.file is not None:
            data["file"] = dict(self.file)
        elif self.vault_key is not None:
            data["vaultKey"] = _key_json(self.vault_key)
        if self.meta is not None and (self.flags & ShareFlag.META):
            data["meta"] = json.loads(json.dumps(self.meta))
        if self.entries:
            data["vaultEntries"] = self.entries
            self.entries = None
            if not self.id:
                data["$op"] = "create"
        return data

    def set_value(self, value: bytes | str, item_type: Optional[int] = None) -> None:
        """Replace the raw content, optionally the type, and mark it for update."""
        self.value = value.encode("utf-8") if isinstance(value, str) else bytes(value)
        if item_type is not None:
            self.type = ItemType(item_type)
        self.force()

    def set_object(self, obj: Any) -> None:
        """Store ``obj`` as JSON text."""
        self.set_value(json.dumps(obj, separators=(",", ":")), ItemType.STRING)

    def get_object(self) -> Any:
        """The content parsed as JSON, or ``None`` if it is not decrypted."""
        if self.value is None:
            return None
        return json.loads(self.value.decode("utf-8"))

    def set_meta(self, meta: Any) -> None:
        """Replace the metadata and mark it to be sent."""
        self.meta = meta
        self.flags |= ShareFlag.META

    def force(self) -> ShareFlag:
        """Mark the item so that every share is re-encrypted on the next post."""
        self.flags |= ShareFlag.UPD
        return self.flags

    def to_uri_internal(self) -> str:
        """The internal-id URI of the item."""
        return f"ves:///{self.id}"

    def is_deleted(self) -> bool:
        """Whether the item has been deleted."""
        return bool(self.flags & ShareFlag.DEL)

    def is_new(self) -> bool:
        """Whether the item was created locally and not loaded from the API."""
        return bool(self.flags & ShareFlag.ADD)

    def find_share(self, key_id: int) -> Optional[ShareKey]:
        """The shared key with the given id, if any."""
        return next((key for key in self.share if key.id == key_id), None)

    def cipher_algo(self) -> str:
        """The stream cipher algorithm name for a file item."""
        if self.value is None:
            raise VESError(ErrorKind.UNLOCK, "Value is not decrypted")
        if self.type != ItemType.FILE:
            raise VESError(ErrorKind.INCORRECT, "Incorrect Vault Item type")
        algo = self.meta.get("a") if isinstance(self.meta, Mapping) else None
        if algo is None:
            return _DEFAULT_CIPHER
        name = str(algo)
        if not name or len(name.encode("utf-8")) >= _ALGO_NAME_LIMIT:
            raise VESError(ErrorKind.UNSUPPORTED, "Unknown cipher algorithm")
        return name