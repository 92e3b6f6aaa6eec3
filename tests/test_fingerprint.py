import pytest

from minesweeper_api.services.fingerprint import (
    ClientInfo,
    Fingerprinter,
    RollingHashProvider,
    Sha256HashProvider,
    entity_tag,
    etag_matches,
    select_hash_provider,
)

CLIENT = ClientInfo(
    ip="203.0.113.7",
    user_agent="Mozilla/5.0",
    accept_language="en-US",
    accept_encoding="gzip",
)


def test_fingerprint_is_stable_twelve_hex_chars():
    fingerprinter = Fingerprinter(Sha256HashProvider())
    first = fingerprinter.fingerprint(CLIENT)
    assert first == fingerprinter.fingerprint(CLIENT)
    assert len(first) == 12
    int(first, 16)


def test_fingerprint_changes_with_headers():
    fingerprinter = Fingerprinter(Sha256HashProvider())
    other = ClientInfo(ip=CLIENT.ip, user_agent="curl/8.0")
    assert fingerprinter.fingerprint(CLIENT) != fingerprinter.fingerprint(other)


def test_rolling_provider_fingerprint():
    fingerprinter = Fingerprinter(RollingHashProvider())
    value = fingerprinter.fingerprint(CLIENT)
    assert len(value) == 12
    assert value == fingerprinter.fingerprint(CLIENT)
    assert value != Fingerprinter(Sha256HashProvider()).fingerprint(CLIENT)


def test_select_hash_provider():
    assert isinstance(select_hash_provider("sha256"), Sha256HashProvider)
    assert isinstance(select_hash_provider("rolling"), RollingHashProvider)
    with pytest.raises(RuntimeError):
        select_hash_provider("md5")


def test_entity_tag_is_quoted_and_deterministic():
    payload = [{"username": "alice", "time": 5.2}]
    tag = entity_tag(payload)
    assert tag.startswith('"') and tag.endswith('"')
    assert len(tag) == 18
    assert tag == entity_tag([{"time": 5.2, "username": "alice"}])
    assert tag != entity_tag([])


@pytest.mark.parametrize(
    "header, expected",
    [
        (None, False),
        ("", False),
        ('"abc"', True),
        ('W/"abc"', True),
        ('"nope", "abc"', True),
        ("*", True),
        ('"abd"', False),
    ],
)
def test_etag_matches(header, expected):
    assert etag_matches(header, '"abc"') is expected
