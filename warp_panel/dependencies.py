# Copyright 2026 Erkin (https://erkin.top)
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Централизованные зависимости приложения (Dependency Injection)
Выбор бэкенда хранилища и реализации проверки происходит только здесь

ОПТИМИЗАЦИИ:
- Thread-safe singleton с double-checked locking
"""
import logging
import threading
from typing import Optional

from warp_panel.config import (
    STORAGE_BACKEND,
    DATABASE_PATH,
    PROBER_MODE,
    PREMIUM_KEYS_PATH,
)
from warp_panel.database import (
    ConfigurationStore,
    MemoryConfigurationStore,
    SQLiteConfigurationStore,
)
from warp_panel.key_sources import load_premium_source
from warp_panel.prober import create_prober
from warp_panel.services import ConfigService
from warp_panel.warp_api import WarpSynthesizer

logger = logging.getLogger(__name__)


def create_store(backend: str = STORAGE_BACKEND) -> ConfigurationStore:
    """Хранилище по STORAGE_BACKEND"""
    if backend == "memory":
        logger.info("Using in-memory configuration store")
        return MemoryConfigurationStore()
    logger.info("Using SQLite configuration store: %s", DATABASE_PATH)
    return SQLiteConfigurationStore(DATABASE_PATH)


# ==================== Config Service ====================
# Thread-safe Singleton для ConfigService

_service: Optional[ConfigService] = None
_service_lock = threading.Lock()


def get_config_service() -> ConfigService:
    """
    Dependency для получения сервиса конфигураций.
    Thread-safe singleton с double-checked locking.
    """
    global _service
    if _service is None:
        with _service_lock:
            if _service is None:
                _service = ConfigService(
                    store=create_store(),
                    synthesizer=WarpSynthesizer(premium_source=load_premium_source(PREMIUM_KEYS_PATH)),
                    prober=create_prober(PROBER_MODE),
                )
    return _service


def reset_config_service():
    """Сброс сервиса (для тестов или пересоздания)"""
    global _service
    with _service_lock:
        if _service is not None:
            _service.store.close()
        _service = None
