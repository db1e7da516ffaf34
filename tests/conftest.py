import random

import pytest

from tests.fakes import FakeProber
from warp_panel.database import MemoryConfigurationStore, SQLiteConfigurationStore
from warp_panel.services import ConfigService
from warp_panel.warp_api import WarpSynthesizer


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    if request.param == "memory":
        backend = MemoryConfigurationStore()
    else:
        backend = SQLiteConfigurationStore(tmp_path / "configurations.db", pool_size=2)
    yield backend
    backend.close()


@pytest.fixture
def synthesizer() -> WarpSynthesizer:
    # Без API endpoint-ов синтезатор всегда уходит в локальный fallback
    return WarpSynthesizer(api_endpoints=[], rng=random.Random(7))


@pytest.fixture
def prober() -> FakeProber:
    return FakeProber()


@pytest.fixture
def service(store, synthesizer, prober) -> ConfigService:
    return ConfigService(store, synthesizer, prober, batch_delay=0)
