import asyncio
import json

import pytest

from warp_panel.errors import NotFoundError, ValidationError
from warp_panel.key_sources import StaticKeySource
from warp_panel.services import ConfigService


UPLOAD = """[Interface]
PrivateKey = uploadedPriv=
Address = 172.16.0.2/32
DNS = 8.8.8.8
MTU = 1380

[Peer]
PublicKey = uploadedPub=
AllowedIPs = 0.0.0.0/0, ::/0
Endpoint = 188.114.97.3:2408
"""


def test_generated_configuration_is_untested(service) -> None:
    generated = asyncio.run(service.generate(region="auto", dns="1.1.1.1, 1.0.0.1", mtu=1280))
    config = generated.configuration

    assert config.is_valid is False
    assert config.test_results is None
    assert config.status == "untested"
    assert config.name.startswith("XO-config-")
    assert generated.source == "fallback"
    assert "MTU = 1280" in generated.content
    assert f"Endpoint = {config.endpoint}" in generated.content


def test_generate_names_premium_configs(store, synthesizer, prober) -> None:
    synthesizer.premium_source = StaticKeySource([{"privateKey": "p=", "publicKey": "q="}])
    service = ConfigService(store, synthesizer, prober, batch_delay=0)

    generated = asyncio.run(service.generate(warp_plus=True))

    assert generated.source == "premium"
    assert generated.configuration.name.startswith("XO-WarpPlus-")
    assert generated.configuration.warp_plus is True


def test_generate_with_bad_dns_stores_nothing(service) -> None:
    with pytest.raises(ValidationError):
        asyncio.run(service.generate(dns="1.1.1.1\n[Peer]"))
    assert service.list() == []


def test_test_updates_validity_and_results(service, prober) -> None:
    config = asyncio.run(service.generate()).configuration

    updated, result = asyncio.run(service.test(config.id))

    assert result.is_valid is True
    assert updated.is_valid is True
    assert updated.status == "valid"
    assert json.loads(updated.test_results)["connectionTest"] is True
    assert prober.probed == [service.render(config)]
    assert service.get(config.id) == updated


def test_failed_probe_marks_invalid(service, prober) -> None:
    prober.dns = False
    config = asyncio.run(service.generate()).configuration

    updated, result = asyncio.run(service.test(config.id))

    assert result.connection_test is True
    assert updated.is_valid is False
    assert updated.status == "invalid"


def test_test_unknown_id(service) -> None:
    with pytest.raises(NotFoundError):
        asyncio.run(service.test(404))


def test_batch_is_clamped(service) -> None:
    generated = asyncio.run(service.batch(count=15))

    assert len(generated) == 10
    assert len(service.list()) == 10
    assert all(item.configuration.region == "telegram-bot" for item in generated)
    assert all(item.configuration.warp_plus for item in generated)
    assert all(item.configuration.name.startswith("XO-TelegramWarp-") for item in generated)


def test_batch_uses_premium_source(store, synthesizer, prober) -> None:
    synthesizer.premium_source = StaticKeySource(
        [{"privateKey": "p1=", "publicKey": "q="}, {"privateKey": "p2=", "publicKey": "q="}],
        ["e1:2408", "e2:2408"],
    )
    service = ConfigService(store, synthesizer, prober, batch_delay=0)

    generated = asyncio.run(service.batch(count=3, dns="9.9.9.9", mtu=1300))

    assert [g.configuration.private_key for g in generated] == ["p1=", "p2=", "p1="]
    assert all(g.source == "premium" for g in generated)
    assert all("DNS = 9.9.9.9" in g.content and "MTU = 1300" in g.content for g in generated)


def test_upload_stores_parsed_fields(service) -> None:
    config = service.upload(UPLOAD)

    assert config.region == "uploaded"
    assert config.warp_plus is True
    assert config.private_key == "uploadedPriv="
    assert config.public_key == "uploadedPub="
    assert config.endpoint == "188.114.97.3:2408"
    assert config.dns == "8.8.8.8"
    assert config.mtu == 1380
    assert config.addresses == ["172.16.0.2/32"]
    assert config.name.startswith("XO-Uploaded-")
    assert "Address = 172.16.0.2/32" in service.render(config)


def test_upload_without_public_key_persists_nothing(service) -> None:
    with pytest.raises(ValidationError):
        service.upload(UPLOAD.replace("PublicKey = uploadedPub=\n", ""))
    assert service.list() == []


def test_delete_and_delete_invalid(service) -> None:
    first = asyncio.run(service.generate()).configuration
    second = asyncio.run(service.generate()).configuration
    asyncio.run(service.test(first.id))

    assert service.delete_invalid() == 1
    assert [c.id for c in service.list()] == [first.id]

    service.delete(first.id)
    with pytest.raises(NotFoundError):
        service.delete(second.id)


def test_upload_with_out_of_range_mtu_stores_default(service) -> None:
    config = service.upload(UPLOAD.replace("MTU = 1380", "MTU = 9000"))

    assert config.mtu == 1280
    assert service.get(config.id).mtu == 1280
    assert "MTU = 1280" in service.render(config)
