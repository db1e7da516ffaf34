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
Проверка конфигураций WireGuard

Prober.probe() разбирает текст конфига и запускает подпроверки:
соединение, DNS, задержка и скорость. Каждая подпроверка изолирована -
сбой одной не прерывает остальные. Задержка и скорость меряются только
при успешном соединении.

Реализации:
- NetworkProber - настоящие сетевые проверки
- SimulatedProber - взвешенные случайные результаты (разработка, демо, тесты)
"""
import asyncio
import ipaddress
import logging
import random
import re
from typing import List, Optional

import httpx

from warp_panel.config import (
    PROBER_MODE,
    PROBE_TIMEOUT,
    DNS_TEST_DOMAIN,
    SPEED_TEST_URL,
    SPEED_TEST_TIMEOUT,
)
from warp_panel.models import TestResult
from warp_panel.wireguard import extract_endpoint, extract_dns, split_endpoint

logger = logging.getLogger(__name__)

NO_ENDPOINT_ERROR = "No endpoint found"


class Prober:
    """Базовый класс: общий порядок проверок, подпроверки в наследниках"""

    async def check_connection(self, host: str, port: int) -> Optional[float]:
        """Время отклика в мс или None, если endpoint недоступен"""
        raise NotImplementedError

    async def check_dns(self, resolvers: List[str]) -> bool:
        raise NotImplementedError

    async def measure_speed(self) -> Optional[float]:
        """Скорость в Мбит/с"""
        raise NotImplementedError

    async def _guarded(self, step: str, coro, default):
        try:
            return await coro
        except Exception as e:
            logger.warning("Probe step '%s' failed: %s", step, e)
            return default

    async def probe(self, content: str) -> TestResult:
        """Полная проверка конфига. Ошибки попадают в result.error, не наружу"""
        result = TestResult()

        endpoint = extract_endpoint(content)
        if not endpoint:
            result.error = NO_ENDPOINT_ERROR
            return result

        host, port = split_endpoint(endpoint)

        rtt = await self._guarded("connection", self.check_connection(host, port), None)
        result.connection_test = rtt is not None

        result.dns_resolution = await self._guarded("dns", self.check_dns(extract_dns(content)), False)

        if result.connection_test:
            result.latency = round(rtt, 2)
            result.speed_test = await self._guarded("speed", self.measure_speed(), None)

        logger.info(
            "Probe %s: connection=%s dns=%s latency=%s speed=%s",
            endpoint, result.connection_test, result.dns_resolution,
            result.latency, result.speed_test
        )
        return result


class NetworkProber(Prober):
    """Реальные сетевые проверки"""

    def __init__(
        self,
        timeout: float = PROBE_TIMEOUT,
        dns_domain: str = DNS_TEST_DOMAIN,
        speed_url: str = SPEED_TEST_URL,
        speed_timeout: float = SPEED_TEST_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout
        self.dns_domain = dns_domain
        self.speed_url = speed_url
        self.speed_timeout = speed_timeout
        self._transport = transport

    async def check_connection(self, host: str, port: int) -> Optional[float]:
        """
        TCP connect к endpoint. Warp слушает UDP, поэтому RST (отказ)
        тоже означает, что хост доступен. Таймаут/недоступность сети = False.
        """
        loop = asyncio.get_running_loop()
        started = loop.time()
        try:
            _, writer = await asyncio.wait_for(asyncio.open_connection(host, port), timeout=self.timeout)
        except ConnectionRefusedError:
            return (loop.time() - started) * 1000
        except (asyncio.TimeoutError, OSError) as e:
            logger.debug("Endpoint %s:%s unreachable: %s", host, port, e)
            return None

        elapsed = (loop.time() - started) * 1000
        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            pass  # соединение уже проверено
        return elapsed

    @staticmethod
    def _doh_url(resolver: str) -> str:
        try:
            if isinstance(ipaddress.ip_address(resolver), ipaddress.IPv6Address):
                return f"https://[{resolver}]/dns-query"
        except ValueError:
            pass
        return f"https://{resolver}/dns-query"

    async def check_dns(self, resolvers: List[str]) -> bool:
        """DNS-over-HTTPS запрос к резолверам из конфига, по очереди, затем системный резолвер"""
        if not resolvers:
            return await self._system_resolve()

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            for resolver in resolvers:
                try:
                    response = await client.get(
                        self._doh_url(resolver),
                        params={"name": self.dns_domain, "type": "A"},
                        headers={"accept": "application/dns-json"},
                    )
                    response.raise_for_status()
                    if response.json().get("Answer"):
                        return True
                except (httpx.HTTPError, ValueError) as e:
                    logger.debug("DNS resolver %s failed: %s", resolver, e)

        # Резолвер может не поддерживать DoH - проверяем системным резолвером
        logger.debug("No DoH resolver answered, trying system resolver")
        return await self._system_resolve()

    async def _system_resolve(self) -> bool:
        loop = asyncio.get_running_loop()
        try:
            infos = await asyncio.wait_for(loop.getaddrinfo(self.dns_domain, 443), timeout=self.timeout)
        except (asyncio.TimeoutError, OSError):
            return False
        return bool(infos)

    async def measure_speed(self) -> Optional[float]:
        """Скачивание payload известного размера: байты * 8 / время"""
        loop = asyncio.get_running_loop()
        total = 0
        started = loop.time()
        async with httpx.AsyncClient(timeout=self.speed_timeout, transport=self._transport) as client:
            async with client.stream("GET", self.speed_url) as response:
                response.raise_for_status()
                async for chunk in response.aiter_bytes():
                    total += len(chunk)
        elapsed = loop.time() - started

        if total == 0 or elapsed <= 0:
            return None
        return round(total * 8 / elapsed / 1_000_000, 2)


# Диапазоны Cloudflare, для которых симуляция даёт больший шанс успеха
_CLOUDFLARE_HOST_RE = re.compile(r'^(162\.159\.|188\.114\.)|cloudflare\.com$|^1\.1\.1\.1$|^1\.0\.0\.1$')
_IPV4_RE = re.compile(r'^\d+\.\d+\.\d+\.\d+$')


class SimulatedProber(Prober):
    """
    Случайные результаты вместо сетевых проверок.
    delay_scale=0 убирает искусственные задержки (для тестов).
    """

    def __init__(self, rng: Optional[random.Random] = None, delay_scale: float = 1.0):
        self._rng = rng or random.Random()
        self.delay_scale = delay_scale

    async def _delay(self, low: float, high: float):
        if self.delay_scale > 0:
            await asyncio.sleep(self._rng.uniform(low, high) * self.delay_scale)

    async def check_connection(self, host: str, port: int) -> Optional[float]:
        # Cloudflare endpoint - 70%
        if _CLOUDFLARE_HOST_RE.search(host):
            await self._delay(1.0, 4.0)
            if self._rng.random() > 0.3:
                return self._rng.uniform(20, 120)

        # IP - 60%, домен - 40%
        await self._delay(0.5, 2.5)
        threshold = 0.4 if _IPV4_RE.match(host) else 0.6
        if self._rng.random() > threshold:
            return self._rng.uniform(20, 120)

        # Последняя попытка - 30%
        await self._delay(0.2, 1.2)
        if self._rng.random() > 0.7:
            return self._rng.uniform(20, 120)

        return None

    async def check_dns(self, resolvers: List[str]) -> bool:
        await self._delay(0.2, 1.2)
        return self._rng.random() > 0.1

    async def measure_speed(self) -> Optional[float]:
        await self._delay(1.0, 4.0)
        return round(self._rng.uniform(1, 20), 2)


def create_prober(mode: str = PROBER_MODE) -> Prober:
    """Выбор реализации по PROBER_MODE"""
    if mode == "simulated":
        logger.warning("Using simulated prober - test results are random")
        return SimulatedProber()
    return NetworkProber()
