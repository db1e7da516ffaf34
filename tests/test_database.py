import threading

import pydantic
import pytest

from warp_panel.errors import ValidationError
from warp_panel.models import ConfigurationCreate
from warp_panel.models import TestResult as CheckResult


def make_create(name: str = "XO-config-1.conf", **overrides) -> ConfigurationCreate:
    values = dict(
        name=name,
        private_key="priv=",
        public_key="pub=",
        endpoint="162.159.192.1:2408",
    )
    values.update(overrides)
    return ConfigurationCreate(**values)


def mark_tested(store, config_id: int, valid: bool):
    result = CheckResult(connection_test=valid, dns_resolution=valid)
    return store.update(config_id, {"is_valid": result.is_valid, "test_results": result.to_json()})


def test_create_applies_defaults(store) -> None:
    config = store.create(make_create())

    assert config.id >= 1
    assert config.dns == "1.1.1.1, 1.0.0.1"
    assert config.mtu == 1280
    assert config.warp_plus is False
    assert config.region == "auto"
    assert config.is_valid is False
    assert config.test_results is None
    assert config.status == "untested"
    assert config.created_at.tzinfo is not None


def test_create_then_get_returns_equal_record(store) -> None:
    created = store.create(make_create(dns="9.9.9.9", mtu=1420, warp_plus=True, region="uploaded"))
    fetched = store.get(created.id)

    assert fetched == created


def test_ids_are_unique(store) -> None:
    ids = {store.create(make_create(f"c{i}")).id for i in range(5)}
    assert len(ids) == 5


def test_get_missing_returns_none(store) -> None:
    assert store.get(999) is None


def test_list_is_newest_first(store) -> None:
    first = store.create(make_create("a"))
    second = store.create(make_create("b"))
    third = store.create(make_create("c"))

    assert [c.id for c in store.list()] == [third.id, second.id, first.id]


def test_update_merges_fields(store) -> None:
    created = store.create(make_create())
    updated = mark_tested(store, created.id, True)

    assert updated.is_valid is True
    assert updated.status == "valid"
    assert updated.name == created.name
    assert updated.created_at == created.created_at
    assert store.get(created.id) == updated


def test_update_missing_returns_none_and_creates_nothing(store) -> None:
    assert store.update(42, {"is_valid": True, "test_results": "{}"}) is None
    assert store.get(42) is None
    assert store.list() == []


@pytest.mark.parametrize("field", ["id", "created_at"])
def test_update_rejects_immutable_fields(store, field: str) -> None:
    created = store.create(make_create())
    with pytest.raises(ValidationError):
        store.update(created.id, {field: None})


def test_update_requires_validity_and_results_together(store) -> None:
    created = store.create(make_create())
    with pytest.raises(ValidationError):
        store.update(created.id, {"is_valid": True})
    with pytest.raises(ValidationError):
        store.update(created.id, {"test_results": "{}"})
    assert store.get(created.id).is_valid is False


def test_update_rejects_unknown_fields(store) -> None:
    created = store.create(make_create())
    with pytest.raises(ValidationError):
        store.update(created.id, {"colour": "red"})


def test_delete(store) -> None:
    created = store.create(make_create())

    assert store.delete(created.id) is True
    assert store.delete(created.id) is False
    assert store.get(created.id) is None


def test_delete_invalid_removes_untested_and_failed(store) -> None:
    valid = store.create(make_create("valid"))
    failed = store.create(make_create("failed"))
    store.create(make_create("untested"))
    mark_tested(store, valid.id, True)
    mark_tested(store, failed.id, False)

    deleted = store.delete_invalid()

    remaining = store.list()
    assert deleted == 2
    assert [c.id for c in remaining] == [valid.id]
    assert all(c.is_valid for c in remaining)
    assert store.delete_invalid() == 0


def test_addresses_are_persisted(store) -> None:
    created = store.create(make_create(addresses=["172.16.0.2/32", "2606:4700::2/128"]))
    assert store.get(created.id).addresses == ["172.16.0.2/32", "2606:4700::2/128"]


def test_create_rejects_out_of_range_mtu() -> None:
    with pytest.raises(pydantic.ValidationError):
        make_create(mtu=9000)
    with pytest.raises(pydantic.ValidationError):
        make_create(mtu=576)


@pytest.mark.parametrize("mtu", [1199, 1501, "1400", True])
def test_update_rejects_bad_mtu(store, mtu) -> None:
    config = store.create(make_create())

    with pytest.raises(ValidationError):
        store.update(config.id, {"mtu": mtu})
    assert store.get(config.id).mtu == 1280


def test_update_accepts_mtu_bounds(store) -> None:
    config = store.create(make_create())

    assert store.update(config.id, {"mtu": 1200}).mtu == 1200
    assert store.update(config.id, {"mtu": 1500}).mtu == 1500


def test_delete_invalid_with_concurrent_creates(store) -> None:
    kept = store.create(make_create("valid"))
    mark_tested(store, kept.id, True)
    existing = {store.create(make_create(f"old-{i}")).id for i in range(20)}

    created_ids = []
    created_lock = threading.Lock()
    start = threading.Barrier(5)
    deleted = []

    def creator(worker: int) -> None:
        start.wait()
        for i in range(15):
            config = store.create(make_create(f"new-{worker}-{i}"))
            with created_lock:
                created_ids.append(config.id)

    def remover() -> None:
        start.wait()
        deleted.append(store.delete_invalid())

    threads = [threading.Thread(target=creator, args=(n,)) for n in range(4)]
    threads.append(threading.Thread(target=remover))
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    remaining = {c.id: c for c in store.list()}
    invalid_total = len(existing) + len(created_ids)
    remaining_invalid = [cid for cid, c in remaining.items() if not c.is_valid]

    assert deleted[0] == invalid_total - len(remaining_invalid)
    assert existing.isdisjoint(remaining)
    assert remaining[kept.id].is_valid is True
    assert set(remaining_invalid) <= set(created_ids)
