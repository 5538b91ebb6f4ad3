from dataclasses import dataclass
from typing import Optional

import pytest

from vescore.sharing import build_entries, delete, fetch, list_for_key, post, share
from vescore.user import User
from vescore.util import ErrorKind, VESError
from vescore.vaultitem import ShareFlag, ShareKey, VaultItem


@dataclass
class FakeKey:
    id: int
    user: Optional[User] = None
    external: object = None
    fail: bool = False

    def encrypt(self, value):
        if self.fail:
            return None
        return f"enc:{self.id}:{value.hex()}"

    def decrypt(self, encdata):
        _, key_id, payload = encdata.split(":")
        if int(key_id) != self.id:
            return None
        return bytes.fromhex(payload)

    def to_json(self):
        return {"id": self.id}


class FakeTransport:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def rest(self, uri, body):
        self.calls.append((uri, body))
        return self.responses.pop(0) if self.responses else {}


def test_share_new_item_encrypts_for_key():
    item = VaultItem()
    item.set_value(b"hello")
    key = FakeKey(5)
    entries = share(item, key, ShareFlag.ADD)
    assert entries == [{"vaultKey": {"id": 5}, "encData": key.encrypt(b"hello")}]
    assert item.entries is entries
    assert item.flags & ShareFlag.CLN
    assert not item.flags & ShareFlag.UPD


def test_share_with_delete_flag():
    item = VaultItem(id=3, flags=ShareFlag(0), value=b"x")
    entries = share(item, FakeKey(5), ShareFlag.DEL)
    assert entries == [{"vaultKey": {"id": 5}, "$op": "delete"}]


def test_missing_value_without_shares_is_param_error():
    item = VaultItem()
    with pytest.raises(VESError) as err:
        share(item, FakeKey(5), ShareFlag.ADD)
    assert err.value.kind is ErrorKind.PARAM


def test_missing_value_with_shares_is_unlock_error():
    item = VaultItem(id=3, flags=ShareFlag(0), share=[FakeKey(1)])
    with pytest.raises(VESError) as err:
        share(item, FakeKey(5), ShareFlag.ADD)
    assert err.value.kind is ErrorKind.UNLOCK


def test_failed_encryption_raises():
    item = VaultItem()
    item.set_value(b"abc")
    with pytest.raises(VESError):
        share(item, FakeKey(5, fail=True), ShareFlag.ADD)


def test_set_removes_keys_not_listed():
    item = VaultItem(id=10, flags=ShareFlag(0), value=b"x", share=[FakeKey(1), FakeKey(2)])
    entries = build_entries(item, [FakeKey(2)], ShareFlag.SET)
    assert entries == [{"vaultKey": {"id": 1}, "$op": "delete"}]


def test_update_reencrypts_all_shares():
    k1, k2 = FakeKey(1), FakeKey(2)
    item = VaultItem(id=10, flags=ShareFlag(0), value=b"data", share=[k1, k2])
    item.force()
    entries = build_entries(item, [], ShareFlag(0))
    assert entries == [
        {"vaultKey": {"id": 1}, "encData": k1.encrypt(b"data")},
        {"vaultKey": {"id": 2}, "encData": k2.encrypt(b"data")},
    ]
    assert item.flags & ShareFlag.CLN
    assert not item.flags & ShareFlag.UPD


def test_primary_flag_replaces_same_user_key():
    new_key = FakeKey(3, user=User(id=9))
    item = VaultItem(id=10, flags=ShareFlag(0), value=b"x", share=[FakeKey(1, user=User(id=9))])
    entries = build_entries(item, [new_key], ShareFlag.SET | ShareFlag.PRI)
    assert entries == [
        {"vaultKey": {"id": 3}, "encData": new_key.encrypt(b"x")},
        {"vaultKey": {"id": 1}, "$op": "delete"},
    ]


def test_without_primary_flag_same_user_key_is_kept():
    new_key = FakeKey(3, user=User(id=9))
    item = VaultItem(id=10, flags=ShareFlag(0), value=b"x", share=[FakeKey(1, user=User(id=9))])
    entries = build_entries(item, [new_key], ShareFlag.SET)
    assert entries == [{"vaultKey": {"id": 3}, "encData": new_key.encrypt(b"x")}]


def test_share_key_without_cipher_cannot_reencrypt():
    item = VaultItem(id=10, flags=ShareFlag.UPD, value=b"x", share=[ShareKey(id=4)])
    with pytest.raises(VESError) as err:
        build_entries(item, [], ShareFlag(0))
    assert err.value.kind is ErrorKind.UNSUPPORTED


def test_post_new_item_uses_default_key():
    item = VaultItem()
    item.set_value(b"hello")
    transport = FakeTransport({"id": 42})
    post(item, transport, FakeKey(5))
    assert item.id == 42
    uri, body = transport.calls[0]
    assert uri == "vaultItems"
    assert body["$op"] == "create"
    assert body["type"] == "string"
    assert len(body["vaultEntries"]) == 1
    assert item.entries is None


def test_post_without_any_key_fails():
    item = VaultItem()
    item.set_value(b"hello")
    with pytest.raises(VESError) as err:
        post(item, FakeTransport(), None)
    assert err.value.kind is ErrorKind.PARAM


def test_delete_marks_item():
    item = VaultItem(id=8, flags=ShareFlag(0))
    transport = FakeTransport()
    delete(item, transport)
    assert transport.calls == [("vaultItems", {"id": 8, "$op": "delete"})]
    assert item.is_deleted()


def test_fetch_requires_reference():
    with pytest.raises(VESError) as err:
        fetch(None, FakeTransport())
    assert err.value.kind is ErrorKind.PARAM


def test_fetch_decrypts_with_unlocked_key():
    key = FakeKey(5)
    response = {
        "id": 77,
        "type": "string",
        "vaultEntries": [{"encData": key.encrypt(b"payload"), "vaultKey": {"id": 5}}],
    }
    transport = FakeTransport(response)
    item = fetch({"file": {"externals": []}}, transport, {5: key})
    assert item.id == 77
    assert item.value == b"payload"
    _, body = transport.calls[0]
    assert body["$op"] == "fetch"
    assert body["file"] == {"externals": []}


def test_list_for_key_errors():
    with pytest.raises(VESError) as err:
        list_for_key(0, FakeTransport())
    assert err.value.kind is ErrorKind.PARAM
    with pytest.raises(VESError) as err:
        list_for_key(5, FakeTransport({}))
    assert err.value.kind is ErrorKind.DENIED


def test_list_for_key_builds_items():
    response = {
        "vaultEntries": [
            {"vaultItem": {"id": 11, "type": "file"}},
            {"vaultItem": {"id": 12, "type": "string", "deleted": True}},
        ]
    }
    transport = FakeTransport(response)
    items = list_for_key(5, transport)
    assert [i.id for i in items] == [11, 12]
    assert [i.is_deleted() for i in items] == [False, True]
    assert transport.calls[0][0].startswith("vaultKeys/5?")