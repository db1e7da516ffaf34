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
Жизненный цикл конфигураций: генерация, загрузка, проверка, пакетная генерация

Роуты работают только через ConfigService - хранилище, синтезатор
и проверка подставляются при создании (см. dependencies.py).
"""
import asyncio
import logging
import secrets
import string
import time
from typing import List, NamedTuple, Tuple

from warp_panel.config import (
    DEFAULT_DNS,
    DEFAULT_MTU,
    BATCH_MAX_COUNT,
    BATCH_DEFAULT_COUNT,
    BATCH_DELAY,
    CONFIG_NAME_PREFIX,
)
from warp_panel.database import ConfigurationStore
from warp_panel.errors import NotFoundError
from warp_panel.models import Configuration, ConfigurationCreate, TestResult, WarpKeys
from warp_panel.prober import Prober
from warp_panel.warp_api import WarpSynthesizer
from warp_panel.wireguard import WGConfigWriter, WGConfigParser

logger = logging.getLogger(__name__)

NOT_FOUND_MESSAGE = "Configuration not found"

# Регионы-метки происхождения записи
REGION_UPLOADED = "uploaded"
REGION_TELEGRAM_BOT = "telegram-bot"


class GeneratedConfig(NamedTuple):
    """Сохранённая запись + отрендеренный .conf + происхождение ключей"""
    configuration: Configuration
    content: str
    source: str

    def to_api(self) -> dict:
        return {
            "configuration": self.configuration.to_api(),
            "content": self.content,
            "source": self.source,
        }


def _millis() -> int:
    return int(time.time() * 1000)


def _random_suffix(length: int = 5) -> str:
    alphabet = string.ascii_lowercase + string.digits
    return ''.join(secrets.choice(alphabet) for _ in range(length))


class ConfigService:
    """Операции над конфигурациями поверх хранилища"""

    def __init__(
        self,
        store: ConfigurationStore,
        synthesizer: WarpSynthesizer,
        prober: Prober,
        batch_max_count: int = BATCH_MAX_COUNT,
        batch_delay: float = BATCH_DELAY,
        name_prefix: str = CONFIG_NAME_PREFIX,
    ):
        self.store = store
        self.synthesizer = synthesizer
        self.prober = prober
        self.batch_max_count = batch_max_count
        self.batch_delay = batch_delay
        self.name_prefix = name_prefix

    def _name(self, kind: str, suffix: str = "") -> str:
        parts = [self.name_prefix, kind, str(_millis())]
        if suffix:
            parts.append(suffix)
        return "-".join(parts) + ".conf"

    def _store_keys(
        self,
        keys: WarpKeys,
        name: str,
        dns: str,
        mtu: int,
        warp_plus: bool,
        region: str
    ) -> GeneratedConfig:
        # Рендер до записи: некорректные значения не оставляют записей в БД
        content = WGConfigWriter.render(keys, dns, mtu)
        config = self.store.create(ConfigurationCreate(
            name=name,
            private_key=keys.private_key,
            public_key=keys.public_key,
            endpoint=keys.endpoint,
            dns=dns,
            mtu=mtu,
            warp_plus=warp_plus,
            region=region,
            addresses=keys.addresses,
        ))
        return GeneratedConfig(config, content, keys.source)

    # ==================== Чтение ====================

    def list(self) -> List[Configuration]:
        return self.store.list()

    def get(self, config_id: int) -> Configuration:
        config = self.store.get(config_id)
        if config is None:
            raise NotFoundError(NOT_FOUND_MESSAGE)
        return config

    def render(self, config: Configuration) -> str:
        return WGConfigWriter.render(config.to_keys(), config.dns, config.mtu)

    # ==================== Создание ====================

    async def generate(
        self,
        region: str = "auto",
        dns: str = DEFAULT_DNS,
        mtu: int = DEFAULT_MTU,
        warp_plus: bool = False
    ) -> GeneratedConfig:
        """Синтез ключей, рендер и сохранение одной конфигурации"""
        keys = await self.synthesizer.generate(region, warp_plus)
        kind = "WarpPlus" if keys.source == "premium" else "config"

        generated = self._store_keys(keys, self._name(kind), dns, mtu, warp_plus, region)
        logger.info(
            "Generated configuration #%d (%s, source=%s)",
            generated.configuration.id, generated.configuration.name, keys.source
        )
        return generated

    async def batch(
        self,
        count: int = BATCH_DEFAULT_COUNT,
        dns: str = DEFAULT_DNS,
        mtu: int = DEFAULT_MTU
    ) -> List[GeneratedConfig]:
        """Пакетная генерация Warp+ конфигов, не больше batch_max_count за запрос"""
        count = max(1, min(count, self.batch_max_count))
        results = []

        for index in range(count):
            if index:
                # Небольшая пауза между записями
                await asyncio.sleep(self.batch_delay)

            keys = await self.synthesizer.generate("auto", warp_plus=True)
            name = self._name("TelegramWarp", _random_suffix())
            results.append(self._store_keys(keys, name, dns, mtu, True, REGION_TELEGRAM_BOT))

        logger.info("Batch generated %d configuration(s)", len(results))
        return results

    def upload(self, content: str) -> Configuration:
        """
        Разбор загруженного .conf и сохранение.

        Raises:
            ValidationError: нет обязательных полей (ничего не сохраняется)
        """
        parsed = WGConfigParser.parse_text(content)
        keys = parsed.to_keys()
        generated = self._store_keys(
            keys, self._name("Uploaded"), parsed.dns, parsed.mtu, True, REGION_UPLOADED
        )
        logger.info("Uploaded configuration #%d", generated.configuration.id)
        return generated.configuration

    # ==================== Проверка ====================

    async def test(self, config_id: int) -> Tuple[Configuration, TestResult]:
        """Проверка конфигурации и сохранение результата"""
        config = self.get(config_id)
        result = await self.prober.probe(self.render(config))

        updated = self.store.update(config_id, {
            "is_valid": result.is_valid,
            "test_results": result.to_json(),
        })
        if updated is None:
            # Удалена, пока шла проверка
            raise NotFoundError(NOT_FOUND_MESSAGE)
        return updated, result

    # ==================== Удаление ====================

    def delete(self, config_id: int):
        if not self.store.delete(config_id):
            raise NotFoundError(NOT_FOUND_MESSAGE)

    def delete_invalid(self) -> int:
        deleted = self.store.delete_invalid()
        logger.info("Deleted %d invalid configuration(s)", deleted)
        return deleted
