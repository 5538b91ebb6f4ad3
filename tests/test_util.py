import pytest

from vescore.util import (
    ErrorKind,
    VESError,
    b64decode,
    b64encode,
    b64encode_web,
    build_uri,
    date_to_usec,
    lookup_algo,
    stricmp,
)


SAMPLES = [b"", b"a", b"ab", b"abc", b"hello world", bytes(range(256))]


def test_b64encode_known_value():
    assert b64encode(b"hello") == "aGVsbG8="


@pytest.mark.parametrize("data", SAMPLES)
def test_b64_round_trip(data):
    assert b64decode(b64encode(data)) == data


@pytest.mark.parametrize("data", SAMPLES)
def test_b64_web_round_trip_without_padding(data):
    enc = b64encode_web(data)
    assert "=" not in enc
    assert "+" not in enc and "/" not in enc
    assert b64decode(enc) == data


def test_b64decode_skips_noise():
    data = bytes(range(40))
    enc = b64encode(data)
    noisy = " \n".join(enc)
    assert b64decode(noisy) == data


def test_b64decode_both_alphabets_agree():
    data = bytes(range(200, 256))
    assert b64decode(b64encode_web(data)) == b64decode(b64encode(data))


def test_build_uri_escapes():
    assert build_uri("example.com", "item 1") == "ves://example.com/item%201"


def test_build_uri_safe_characters_pass_through():
    assert build_uri("a,b-c.d") == "ves://a,b-c.d"


def test_build_uri_none_component_is_empty_segment():
    assert build_uri(None, "42") == "ves:///42"


def test_build_uri_is_capped():
    uri = build_uri("x" * 5000)
    assert uri.startswith("ves://x")
    assert len(uri) <= 1024


def test_date_none_and_garbage():
    assert date_to_usec(None) == 0
    assert date_to_usec("garbage") == 0


def test_date_epoch():
    assert date_to_usec("1970-01-01T00:00:00Z") == 0


def test_date_only_equals_midnight():
    assert date_to_usec("2021-06-15") == date_to_usec("2021-06-15T00:00:00Z")


def test_date_fraction():
    diff = date_to_usec("2020-05-05T10:00:00.5Z") - date_to_usec("2020-05-05T10:00:00Z")
    assert diff == 500000


def test_date_days_are_uniform_across_months():
    day = date_to_usec("2021-02-28") - date_to_usec("2021-02-27")
    assert day > 0
    assert date_to_usec("2021-03-01") - date_to_usec("2021-02-28") == day
    assert date_to_usec("2021-01-01") - date_to_usec("2020-12-31") == day


def test_date_leap_year():
    day = date_to_usec("2020-02-28") - date_to_usec("2020-02-27")
    assert date_to_usec("2020-03-01") - date_to_usec("2020-02-28") == 2 * day


def test_date_time_components_order():
    assert date_to_usec("2022-01-01T00:00:01Z") < date_to_usec("2022-01-01T00:01:00Z")
    assert date_to_usec("2022-01-01T00:01:00Z") < date_to_usec("2022-01-01T01:00:00Z")


def test_stricmp():
    assert stricmp("ABC", "abc") == 0
    assert stricmp("a", "b") == -1
    assert stricmp("B", "a") == 1
    assert stricmp("ab", "a") == 1
    assert stricmp("a", "ab") == -1
    assert stricmp("", "") == 0


def test_lookup_algo():
    marker = object()
    registry = {"RSA": marker}
    assert lookup_algo("RSA", registry) is marker
    assert lookup_algo("RSA:2048", registry) is marker
    assert lookup_algo("ECDH", registry) is None
    assert lookup_algo(None, registry) is None


def test_lookup_algo_long_prefix_rejected():
    long_name = "x" * 30
    registry = {long_name: object()}
    assert lookup_algo(long_name + ":opt", registry) is None


def test_ves_error_carries_kind():
    err = VESError(ErrorKind.NOTFOUND, "missing")
    assert err.kind is ErrorKind.NOTFOUND
    assert err.message == "missing"
    assert "missing" in str(err)