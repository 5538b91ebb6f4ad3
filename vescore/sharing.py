"""Sharing vault items with vault keys and syncing them with the API."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any, Optional, Protocol

from .user import User
from .util import ErrorKind, Transport, VESError
from .vaultitem import ShareFlag, ShareKey, VaultItem

__all__ = [
    "KeyLike",
    "build_entries",
    "share",
    "post",
    "delete",
    "fetch",
    "list_for_key",
]

_FETCH_URI = (
    "vaultItems?fields=id,type,meta,file(externals,creator(id,email,firstName,lastName)),"
    "vaultKey(id,type,algo,user,externals),"
    "vaultEntries(encData,vaultKey(id,type,user(id),externals))"
)
_LIST_URI = (
    "vaultKeys/{}?fields=vaultEntries(vaultItem(id,type,deleted,"
    "file(externals,creator),vaultKey(externals,user),meta))"
)


class KeyLike(Protocol):
    """A vault key that can encrypt and decrypt vault item content."""

    id: int
    user: Optional[User]
    external: Any

    def encrypt(self, value: bytes) -> Optional[str]:
        """Encrypt ``value`` for this key; return the encoded ciphertext or ``None``."""

    def decrypt(self, encdata: str) -> Optional[bytes]:
        """Decrypt ``encdata``; return the plaintext or ``None`` if not possible."""


def _key_ref(key: Any) -> dict:
    if isinstance(key, ShareKey):
        return dict(key.data) if key.data else {"id": key.id}
    to_json = getattr(key, "to_json", None)
    if callable(to_json):
        return to_json()
    return {"id": key.id}


def _encrypt(key: Any, value: bytes) -> str:
    encrypt = getattr(key, "encrypt", None)
    if not callable(encrypt):
        raise VESError(ErrorKind.UNSUPPORTED, f"Vault key {key.id} cannot encrypt")
    enc = encrypt(value)
    if not enc:
        raise VESError(ErrorKind.INCORRECT, f"Encryption with vault key {key.id} failed")
    return enc


def _delete_entry(key_id: int) -> dict:
    return {"vaultKey": {"id": key_id}, "$op": "delete"}


def build_entries(item: VaultItem, keys: Iterable[Any], flags: int) -> list:
    """Prepare vault entries that share or unshare ``item`` with ``keys``.

    The entries are stored on the item and sent by :func:`post`.
    """
    flags = int(flags) | int(item.flags & ShareFlag.UPD)
    entries = item.entries if isinstance(item.entries, list) else []
    item.entries = None
    shflags = [0] * len(item.share)

    for key in keys:
        exists = False
        if key.id:
            if flags & ShareFlag.DEL:
                entries.append(_delete_entry(key.id))
                continue
            key_user = getattr(key, "user", None)
            for j, shared in enumerate(item.share):
                shared_user = getattr(shared, "user", None)
                if key.id == shared.id:
                    shflags[j] |= ShareFlag.CLN
                    exists = True
                elif (
                    not getattr(shared, "external", None)
                    and key_user is not None
                    and shared_user is not None
                    and shared_user.id == key_user.id
                ):
                    shflags[j] |= ShareFlag.PRI
        if not flags & (ShareFlag.UPD if exists else ShareFlag.ADD):
            continue
        if item.value is None:
            if item.share:
                raise VESError(
                    ErrorKind.UNLOCK, "The value of the vault item has not been decrypted"
                )
            raise VESError(ErrorKind.PARAM, "Vault item value has not been supplied")
        entries.append({"vaultKey": _key_ref(key), "encData": _encrypt(key, item.value)})

    if flags & (ShareFlag.CLN | ShareFlag.UPD):
        keep_mask = ~(flags & ShareFlag.PRI)
        for shared, mark in zip(item.share, shflags):
            if flags & ShareFlag.CLN and not (keep_mask & mark):
                entries.append(_delete_entry(shared.id))
            elif flags & ShareFlag.UPD and not mark & ShareFlag.CLN:
                if item.value is None:
                    raise VESError(
                        ErrorKind.UNLOCK, "The value of the vault item has not been decrypted"
                    )
                entries.append(
                    {"vaultKey": _key_ref(shared), "encData": _encrypt(shared, item.value)}
                )

    if item.flags & ShareFlag.UPD:
        item.flags = ShareFlag((int(item.flags) & ~int(ShareFlag.UPD)) | int(ShareFlag.CLN))
    item.entries = entries
    return entries


def share(item: VaultItem, key: Any, flags: int) -> list:
    """Prepare entries to share or unshare ``item`` with a single key."""
    return build_entries(item, [key], flags)


def post(item: VaultItem, transport: Transport, default_key: Optional[Any] = None) -> None:
    """Commit the item and its pending entries.

    A new item with no shares is shared with ``default_key``.
    """
    if item.flags & ShareFlag.UPD and item.entries is None:
        if item.share:
            build_entries(item, [], ShareFlag.ADD)
        else:
            if default_key is None:
                raise VESError(ErrorKind.PARAM, "No vault key to share the vault item with")
            build_entries(item, [default_key], ShareFlag.ADD)
    response = transport.rest("vaultItems", item.to_json())
    if not item.id and isinstance(response, Mapping):
        try:
            item.id = int(response.get("id") or 0)
        except (TypeError, ValueError):
            item.id = 0


def delete(item: VaultItem, transport: Transport) -> None:
    """Delete the item from the repository."""
    transport.rest("vaultItems", {"id": item.id, "$op": "delete"})
    item.flags |= ShareFlag.DEL


def fetch(
    ref_json: Optional[Mapping[str, Any]],
    transport: Transport,
    unlocked: Optional[Mapping[int, Any]] = None,
) -> VaultItem:
    """Load the item a reference points to, decrypting it with an unlocked key if possible."""
    if not ref_json:
        raise VESError(ErrorKind.PARAM, "Vault reference is not valid")
    request = dict(ref_json)
    request["$op"] = "fetch"
    response = transport.rest(_FETCH_URI, request)
    return VaultItem.from_json(response, unlocked)


def list_for_key(
    key_id: int, transport: Transport, unlocked: Optional[Mapping[int, Any]] = None
) -> list[VaultItem]:
    """All vault items shared with the vault key ``key_id``."""
    if not key_id:
        raise VESError(ErrorKind.PARAM, "VaultKey id is not set")
    response = transport.rest(_LIST_URI.format(key_id), None)
    entries = response.get("vaultEntries") if isinstance(response, Mapping) else None
    if not isinstance(entries, list):
        raise VESError(ErrorKind.DENIED, "Vault Entries are not accessible")
    items = []
    for entry in entries:
        data = entry.get("vaultItem") if isinstance(entry, Mapping) else None
        if isinstance(data, Mapping):
            items.append(VaultItem.from_json(data, unlocked))
    return items