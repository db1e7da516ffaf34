import asyncio
import json

import pytest

from warp_panel.errors import ValidationError
from warp_panel.key_sources import StaticKeySource, load_premium_source


def test_static_source_rotates_keys_and_endpoints() -> None:
    source = StaticKeySource(
        [
            {"privateKey": "a=", "publicKey": "pa="},
            {"privateKey": "b=", "publicKey": "pb="},
        ],
        ["e1:2408", "e2:2408", "e3:2408"],
    )

    fetched = [asyncio.run(source.fetch()) for _ in range(3)]

    assert [k.private_key for k in fetched] == ["a=", "b=", "a="]
    assert [k.endpoint for k in fetched] == ["e1:2408", "e2:2408", "e3:2408"]
    assert all(k.source == "premium" for k in fetched)


def test_empty_source_returns_none() -> None:
    assert asyncio.run(StaticKeySource([]).fetch()) is None


def test_entry_without_keys_is_rejected() -> None:
    with pytest.raises(ValidationError):
        StaticKeySource([{"privateKey": "a="}])


def test_load_from_file(tmp_path) -> None:
    path = tmp_path / "premium.json"
    path.write_text(json.dumps({
        "keys": [{"privateKey": "a=", "publicKey": "pa=", "addresses": ["10.2.0.9/32"]}],
        "endpoints": ["188.114.97.1:2408"],
    }), encoding="utf-8")

    source = load_premium_source(str(path))
    keys = asyncio.run(source.fetch())

    assert len(source) == 1
    assert keys.addresses == ["10.2.0.9/32"]
    assert keys.endpoint == "188.114.97.1:2408"


def test_missing_file_disables_source(tmp_path) -> None:
    assert load_premium_source("") is None
    assert load_premium_source(str(tmp_path / "absent.json")) is None


def test_empty_endpoint_list_uses_per_entry_endpoints() -> None:
    source = StaticKeySource(
        [
            {"privateKey": "a=", "publicKey": "pa=", "endpoint": "own-a:2408"},
            {"privateKey": "b=", "publicKey": "pb="},
        ],
        [],
    )

    first = asyncio.run(source.fetch())
    second = asyncio.run(source.fetch())

    assert first.endpoint == "own-a:2408"
    assert second is None


def test_file_with_empty_endpoints_keeps_entry_endpoint(tmp_path) -> None:
    path = tmp_path / "premium.json"
    path.write_text(json.dumps({
        "keys": [{"privateKey": "a=", "publicKey": "pa=", "endpoint": "own:500"}],
        "endpoints": [],
    }), encoding="utf-8")

    keys = asyncio.run(load_premium_source(str(path)).fetch())

    assert keys.endpoint == "own:500"


@pytest.mark.parametrize("content", [
    "{not json",
    "[]",
    '{"keys": {"privateKey": "a="}}',
    '{"keys": ["a="]}',
    '{"keys": [{"privateKey": "a="}]}',
    '{"keys": [], "endpoints": "e1:2408"}',
])
def test_malformed_file_disables_source(tmp_path, content: str) -> None:
    path = tmp_path / "premium.json"
    path.write_text(content, encoding="utf-8")

    assert load_premium_source(str(path)) is None
