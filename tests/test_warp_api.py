import asyncio
import json
import random

import httpx

from warp_panel.key_sources import KeySource, StaticKeySource
from warp_panel.warp_api import WarpSynthesizer, endpoint_for_region
from warp_panel.wireguard import WGKeyGenerator

PEER_KEY = "bmXOC+F1FxEMF9dyiK2H5/1SUtzH0JuVo51h2wPfgyo="

REGISTRATION = {
    "config": {
        "peers": [{"public_key": "remotePeerKey="}],
        "interface": {"addresses": {"v4": "172.16.0.2", "v6": "2606:4700:110:8a36::2"}},
    }
}


class RecordingHandler:
    def __init__(self, responses: dict) -> None:
        self.responses = responses
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses[request.url.host]
        if isinstance(response, Exception):
            raise response
        return response


class BrokenKeySource(KeySource):
    async def fetch(self):
        raise RuntimeError("bot offline")


def make_synthesizer(handler, **kwargs) -> WarpSynthesizer:
    kwargs.setdefault("api_endpoints", ["https://first.test/v0a745", "https://second.test/v0a745"])
    return WarpSynthesizer(
        transport=httpx.MockTransport(handler),
        rng=random.Random(1),
        alternate_endpoints=["162.159.192.1:2408"],
        **kwargs,
    )


def test_registration_falls_through_to_next_endpoint() -> None:
    handler = RecordingHandler({
        "first.test": httpx.Response(500),
        "second.test": httpx.Response(200, json=REGISTRATION),
    })
    keys = asyncio.run(make_synthesizer(handler).generate("eu-central"))

    assert keys.source == "remote"
    assert keys.public_key == "remotePeerKey="
    assert keys.addresses == ["172.16.0.2/32", "2606:4700:110:8a36::2/128"]
    assert keys.endpoint == "engage.cloudflare.com:2408"
    assert [r.url.host for r in handler.requests] == ["first.test", "second.test"]


def test_registration_payload_carries_derived_public_key() -> None:
    handler = RecordingHandler({"first.test": httpx.Response(200, json=REGISTRATION)})
    keys = asyncio.run(make_synthesizer(handler).generate())

    request = handler.requests[0]
    body = json.loads(request.content)
    assert request.url.path == "/v0a745/reg"
    assert request.headers["user-agent"] == "okhttp/3.12.1"
    assert body["key"] == WGKeyGenerator.get_public_key(keys.private_key)
    assert body["type"] == "Android"


def test_all_endpoints_failing_yields_fallback() -> None:
    handler = RecordingHandler({
        "first.test": httpx.ConnectTimeout("timed out"),
        "second.test": httpx.Response(200, content=b"not json"),
    })
    keys = asyncio.run(make_synthesizer(handler).generate())

    assert keys.source == "fallback"
    assert keys.public_key == PEER_KEY
    assert keys.endpoint == "162.159.192.1:2408"
    assert len(handler.requests) == 2


def test_response_without_peers_uses_defaults() -> None:
    handler = RecordingHandler({"first.test": httpx.Response(200, json={"result": {}})})
    keys = asyncio.run(make_synthesizer(handler).generate())

    assert keys.source == "remote"
    assert keys.public_key == PEER_KEY
    assert keys.addresses[0] == "10.2.0.2/32"


def test_premium_source_is_consulted_first_for_warp_plus() -> None:
    handler = RecordingHandler({})
    source = StaticKeySource(
        [{"privateKey": "plusPriv=", "publicKey": "plusPub="}],
        ["188.114.96.1:2408"],
    )
    keys = asyncio.run(make_synthesizer(handler, premium_source=source).generate(warp_plus=True))

    assert keys.source == "premium"
    assert keys.private_key == "plusPriv="
    assert keys.endpoint == "188.114.96.1:2408"
    assert handler.requests == []


def test_premium_source_ignored_for_free_tier() -> None:
    handler = RecordingHandler({"first.test": httpx.Response(200, json=REGISTRATION)})
    source = StaticKeySource([{"privateKey": "plusPriv=", "publicKey": "plusPub="}])
    keys = asyncio.run(make_synthesizer(handler, premium_source=source).generate(warp_plus=False))

    assert keys.source == "remote"


def test_broken_premium_source_falls_through_to_registration() -> None:
    handler = RecordingHandler({"first.test": httpx.Response(200, json=REGISTRATION)})
    keys = asyncio.run(
        make_synthesizer(handler, premium_source=BrokenKeySource()).generate(warp_plus=True)
    )

    assert keys.source == "remote"


def test_unknown_region_maps_to_auto() -> None:
    assert endpoint_for_region("mars") == endpoint_for_region("auto")
    assert endpoint_for_region("us-west") == "engage.cloudflare.com:2408"


def test_non_object_registration_body_moves_to_next_endpoint() -> None:
    handler = RecordingHandler({
        "first.test": httpx.Response(200, json=["captive"]),
        "second.test": httpx.Response(200, json=REGISTRATION),
    })
    keys = asyncio.run(make_synthesizer(handler).generate())

    assert keys.source == "remote"
    assert keys.public_key == "remotePeerKey="
    assert len(handler.requests) == 2


def test_non_object_bodies_everywhere_yield_fallback() -> None:
    handler = RecordingHandler({
        "first.test": httpx.Response(200, json="captive portal"),
        "second.test": httpx.Response(200, json=None),
    })
    keys = asyncio.run(make_synthesizer(handler).generate())

    assert keys.source == "fallback"


def test_malformed_nested_registration_fields_use_defaults() -> None:
    bodies = [
        {"config": "x"},
        {"result": "x"},
        {"config": {"peers": ["x"], "interface": "x"}},
        {"config": {"peers": [{"public_key": 5}], "interface": {"addresses": {"v4": 1}}}},
    ]
    for body in bodies:
        handler = RecordingHandler({"first.test": httpx.Response(200, json=body)})
        keys = asyncio.run(make_synthesizer(handler).generate())

        assert keys.source == "remote"
        assert keys.public_key == PEER_KEY
        assert keys.addresses[0] == "10.2.0.2/32"
