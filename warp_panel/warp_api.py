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
Синтезатор конфигураций Cloudflare Warp

Порядок получения ключей:
1. Warp+ источник (только для warp_plus и если источник подключён)
2. Регистрация устройства через API - по очереди по списку endpoint-ов
3. Fallback - локально сгенерированный ключ и альтернативный endpoint

generate() никогда не падает из-за недоступности API: результат всегда есть,
а откуда он взялся видно по полю source.
"""
import logging
import random
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional

import httpx

from warp_panel.config import (
    WARP_API_ENDPOINTS,
    WARP_API_TIMEOUT,
    WARP_PEER_PUBLIC_KEY,
    WARP_ALTERNATE_ENDPOINTS,
    REGION_ENDPOINTS,
    DEFAULT_ADDRESSES,
)
from warp_panel.errors import UpstreamUnavailable
from warp_panel.key_sources import KeySource
from warp_panel.models import WarpKeys
from warp_panel.wireguard import WGKeyGenerator

logger = logging.getLogger(__name__)

# Клиент Warp для Android
REGISTRATION_HEADERS = {
    "Content-Type": "application/json",
    "User-Agent": "okhttp/3.12.1",
}


def endpoint_for_region(region: str, table: Optional[Dict[str, str]] = None) -> str:
    """Endpoint для региона, неизвестный регион = auto"""
    table = table or REGION_ENDPOINTS
    return table.get(region) or table["auto"]


def _as_dict(value) -> dict:
    """Вложенные объекты ответа API бывают не словарями - считаем их пустыми"""
    return value if isinstance(value, dict) else {}


def _normalize_addresses(raw) -> List[str]:
    """
    Адреса интерфейса из ответа API.
    Бывают как {"v4": "172.16.0.2", "v6": "2606:..."} так и списком.
    """
    if isinstance(raw, dict):
        result = []
        v4 = raw.get("v4")
        v6 = raw.get("v6")
        if isinstance(v4, str) and v4:
            result.append(v4 if "/" in v4 else f"{v4}/32")
        if isinstance(v6, str) and v6:
            result.append(v6 if "/" in v6 else f"{v6}/128")
        return result
    if isinstance(raw, list):
        return [str(item) for item in raw if item]
    return []


class WarpSynthesizer:
    """Получение ключей/endpoint/адресов для новой конфигурации"""

    def __init__(
        self,
        api_endpoints: Optional[List[str]] = None,
        timeout: float = WARP_API_TIMEOUT,
        premium_source: Optional[KeySource] = None,
        alternate_endpoints: Optional[List[str]] = None,
        peer_public_key: str = WARP_PEER_PUBLIC_KEY,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        rng: Optional[random.Random] = None,
    ):
        self.api_endpoints = list(api_endpoints if api_endpoints is not None else WARP_API_ENDPOINTS)
        self.timeout = timeout
        self.premium_source = premium_source
        self.alternate_endpoints = list(alternate_endpoints or WARP_ALTERNATE_ENDPOINTS)
        self.peer_public_key = peer_public_key
        self._transport = transport
        self._rng = rng or random.Random()

    async def register(self, public_key: str) -> dict:
        """
        Регистрация устройства. Endpoint-ы пробуются по порядку,
        каждая попытка ограничена таймаутом.

        Raises:
            UpstreamUnavailable: ни один endpoint не ответил успешно
        """
        payload = {
            "key": public_key,
            "install_id": str(uuid.uuid4()),
            "fcm_token": str(uuid.uuid4()),
            "tos": datetime.now(timezone.utc).strftime('%Y-%m-%dT%H:%M:%S.000Z'),
            "type": "Android",
            "locale": "en_US",
        }

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            for base_url in self.api_endpoints:
                try:
                    response = await client.post(
                        f"{base_url.rstrip('/')}/reg",
                        json=payload,
                        headers=REGISTRATION_HEADERS,
                    )
                    response.raise_for_status()
                    data = response.json()
                except (httpx.HTTPError, ValueError) as e:
                    logger.warning("Warp registration via %s failed: %s", base_url, e)
                    continue

                if not isinstance(data, dict):
                    logger.warning("Warp registration via %s returned unexpected body", base_url)
                    continue

                logger.info("Warp registration succeeded via %s", base_url)
                return data

        raise UpstreamUnavailable("Unable to reach any Warp registration endpoint")

    def _from_registration(self, private_key: str, registration: dict, region: str) -> WarpKeys:
        result = _as_dict(registration.get("result"))
        config = _as_dict(registration.get("config")) or _as_dict(result.get("config"))

        peers = config.get("peers")
        first_peer = _as_dict(peers[0]) if isinstance(peers, list) and peers else {}
        peer_public_key = first_peer.get("public_key")
        if not isinstance(peer_public_key, str) or not peer_public_key:
            peer_public_key = self.peer_public_key

        addresses = _normalize_addresses(_as_dict(config.get("interface")).get("addresses"))

        return WarpKeys(
            private_key=private_key,
            public_key=peer_public_key,
            endpoint=endpoint_for_region(region),
            addresses=addresses or list(DEFAULT_ADDRESSES),
            source="remote",
        )

    def fallback(self, private_key: Optional[str] = None) -> WarpKeys:
        """Полностью локальный конфиг с альтернативным endpoint"""
        return WarpKeys(
            private_key=private_key or WGKeyGenerator.generate_private_key(),
            public_key=self.peer_public_key,
            endpoint=self._rng.choice(self.alternate_endpoints),
            addresses=list(DEFAULT_ADDRESSES),
            source="fallback",
        )

    async def _from_premium(self) -> Optional[WarpKeys]:
        try:
            return await self.premium_source.fetch()
        except Exception as e:
            # Источник Warp+ опционален - при сбое идём обычным путём
            logger.warning("Premium key source failed, using Warp API: %s", e)
            return None

    async def generate(self, region: str = "auto", warp_plus: bool = False) -> WarpKeys:
        """Новый набор ключей. Не бросает исключений при недоступности API"""
        if warp_plus and self.premium_source is not None:
            keys = await self._from_premium()
            if keys is not None:
                return keys

        private_key = WGKeyGenerator.generate_private_key()
        try:
            registration = await self.register(WGKeyGenerator.get_public_key(private_key))
        except UpstreamUnavailable as e:
            logger.warning("%s - generating fallback configuration", e)
            return self.fallback(private_key)

        return self._from_registration(private_key, registration, region)
