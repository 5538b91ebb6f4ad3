# vescore

A small library with no dependencies that models the objects of a VES vault:
users, vault items, the encrypted entries that share an item with vault keys,
and watches that page through a stream of events.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Modules

- `vescore.util`: the base64 helpers `b64encode`, `b64encode_web` (URL-safe,
  unpadded) and `b64decode` (accepts both alphabets and skips other
  characters), `build_uri`, `date_to_usec`, `stricmp`, `lookup_algo`, the
  `VESError` exception with its `ErrorKind`, and the `Transport` protocol.
- `vescore.user`: `User`. `User.from_path` parses the user part of a `ves:`
  URI; `from_json`, `merge_json`, `to_json`, `load_fields`, `name`, `copy` and
  `matches` cover the rest.
- `vescore.vaultitem`: `VaultItem`, `ItemType`, `ShareFlag`, `ShareKey`,
  `type_str` and `type_from_str`.
- `vescore.sharing`: the `KeyLike` protocol and the functions
  `build_entries`, `share`, `post`, `delete`, `fetch` and `list_for_key`.
- `vescore.watch`: `Watch`, `WatchSpec` and `WatchFlag`, the specs
  `VAULT_KEY_EVENTS`, `VAULT_ITEM_EVENTS` and `USER_EVENTS`, the default
  timeout `WATCH_TIMEOUT`, and the constructors `vault_key_events`,
  `user_events`, `domain_events` and `vault_item_events`.

## Example

```python
from vescore.util import b64encode, build_uri
from vescore.user import User

print(b64encode(b"hello"))                 # aGVsbG8=
print(build_uri("example.com", "item 1"))  # ves://example.com/item%201

user, rest = User.from_path("Jane Doe <jane@example.com>, more")
print(user.email, user.name())             # jane@example.com Jane Doe
print(repr(rest))                          # ', more'
```

The service is reached through any object with a
`rest(uri, body) -> dict` method, which sends `body` (or nothing, for a GET)
and returns the decoded reply, raising `VESError` on failure:

```python
class MyTransport:
    def rest(self, uri, body):
        ...  # send the request, return the decoded JSON reply
```

A `Watch` is iterable. Each step returns the next event and, when the events
it holds run out, loads the next page through the transport. `make_event` is
called as `make_event(watch, record)` for every event record; returning
`None` skips the record.

```python
from vescore.watch import user_events

watch = user_events(MyTransport(), lambda w, record: record,
                    "https://api.example.com/", "https://poll.example.com/")
watch.start(0)
for event in watch:
    ...
```

Failures are raised as `VESError`; its `kind` is one of the `ErrorKind`
values.

## What this package does not do

- It does no networking. Every request goes through the `Transport` you
  supply.
- It does no cryptography. Values are encrypted and decrypted only through
  key objects you supply that follow `KeyLike` (`encrypt`, `decrypt`), and
  `from_json`, `fetch` and `list_for_key` decrypt with the unlocked keys you
  pass in as a mapping from key id to key.
- It has no vault key objects of its own: no key generation, unlocking,
  locking or rekeying. `ShareKey` only records a key as a vault entry refers
  to it.
- It has no stream ciphers. `VaultItem.cipher_algo` only returns the name of
  the algorithm a file item uses.
- It does not resolve `ves:` URIs into objects. `build_uri` builds them,
  `User.from_path` parses the user part, and `VaultItem.to_uri_internal`
  gives an item's internal-id URI.
- It has no command-line tool.