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
Модуль для работы с конфигурацией WireGuard
Генерация ключей, рендер клиентского .conf и парсинг загруженных файлов

ОПТИМИЗАЦИИ:
- Lazy loading для cryptography
- Мемоизация публичных ключей
- Предкомпилированные regex
"""
import re
import base64
from functools import lru_cache
from typing import Dict, List, Optional

from warp_panel.config import (
    DEFAULT_DNS,
    DEFAULT_MTU,
    MIN_MTU,
    MAX_MTU,
    DEFAULT_ALLOWED_IPS,
    DEFAULT_PERSISTENT_KEEPALIVE,
)
from warp_panel.errors import ValidationError
from warp_panel.models import WarpKeys, ParsedConfig


# Размер LRU кэша публичных ключей (вычисление затратная операция)
PUBKEY_CACHE_SIZE = 128

# Lazy-loaded cryptography модули
_x25519_loaded = False
_X25519PrivateKey = None


def _load_x25519():
    """Lazy loading для cryptography - загружаем только при необходимости"""
    global _x25519_loaded, _X25519PrivateKey
    if not _x25519_loaded:
        from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PrivateKey
        _X25519PrivateKey = X25519PrivateKey
        _x25519_loaded = True
    return _X25519PrivateKey


@lru_cache(maxsize=PUBKEY_CACHE_SIZE)
def _derive_public_key(private_key: str) -> str:
    X25519PrivateKey = _load_x25519()
    private_bytes = base64.b64decode(private_key)
    private_key_obj = X25519PrivateKey.from_private_bytes(private_bytes)
    return base64.b64encode(private_key_obj.public_key().public_bytes_raw()).decode()


class WGKeyGenerator:
    """Генератор ключей WireGuard (X25519 через cryptography)"""

    @staticmethod
    def generate_private_key() -> str:
        """Приватный ключ: 32 случайных байта в base64"""
        X25519PrivateKey = _load_x25519()
        private_key = X25519PrivateKey.generate()
        return base64.b64encode(private_key.private_bytes_raw()).decode()

    @staticmethod
    def get_public_key(private_key: str) -> str:
        """Получение публичного ключа из приватного (с кэшированием)"""
        return _derive_public_key(private_key)


class WGConfigWriter:
    """Генератор клиентского конфига WireGuard"""

    @staticmethod
    def _check_value(key: str, value: str):
        # Перевод строки в значении сломает INI
        if "\n" in value or "\r" in value:
            raise ValidationError(f"Invalid value for {key}: line breaks are not allowed")

    @staticmethod
    def render(
        keys: WarpKeys,
        dns: str = DEFAULT_DNS,
        mtu: int = DEFAULT_MTU,
        allowed_ips: str = DEFAULT_ALLOWED_IPS,
        persistent_keepalive: int = DEFAULT_PERSISTENT_KEEPALIVE
    ) -> str:
        """Рендер двухсекционного конфига [Interface] + [Peer]"""
        interface = [
            ("PrivateKey", keys.private_key),
            ("Address", ", ".join(keys.addresses)),
            ("DNS", dns),
            ("MTU", str(mtu)),
        ]
        peer = [
            ("PublicKey", keys.public_key),
            ("AllowedIPs", allowed_ips),
            ("Endpoint", keys.endpoint),
            ("PersistentKeepalive", str(persistent_keepalive)),
        ]

        lines = ["[Interface]"]
        for key, value in interface:
            WGConfigWriter._check_value(key, value)
            lines.append(f"{key} = {value}")

        lines.append("")
        lines.append("[Peer]")
        for key, value in peer:
            WGConfigWriter._check_value(key, value)
            lines.append(f"{key} = {value}")

        return '\n'.join(lines) + '\n'


class WGConfigParser:
    """
    Парсер клиентского конфига WireGuard (загрузка пользователем).
    Секции и ключи регистронезависимы, неизвестные ключи игнорируются.
    """

    _SECTION_RE = re.compile(r'^\[\s*(\w+)\s*\]$')

    REQUIRED_FIELDS = ("PrivateKey", "PublicKey", "Endpoint")

    @classmethod
    def parse_text(cls, content: str) -> ParsedConfig:
        """
        Парсинг текста конфига.

        Raises:
            ValidationError: нет PrivateKey, PublicKey или Endpoint
        """
        interface: Dict[str, str] = {}
        peer: Dict[str, str] = {}
        current: Optional[Dict[str, str]] = None

        for line in content.splitlines():
            line = line.strip()

            if not line or line.startswith('#') or line.startswith(';'):
                continue

            match = cls._SECTION_RE.match(line)
            if match:
                section = match.group(1).lower()
                if section == 'interface':
                    current = interface
                elif section == 'peer':
                    current = peer
                else:
                    current = None
                continue

            if current is not None and '=' in line:
                # Делим по первому '=' - base64 ключи заканчиваются на '='
                key, value = line.split('=', 1)
                current[key.strip().lower()] = value.strip()

        fields = {
            "PrivateKey": interface.get('privatekey', ''),
            "PublicKey": peer.get('publickey', ''),
            "Endpoint": peer.get('endpoint', ''),
        }
        missing = [name for name in cls.REQUIRED_FIELDS if not fields[name]]
        if missing:
            raise ValidationError(
                "Invalid WireGuard configuration: missing required fields: " + ", ".join(missing)
            )

        try:
            mtu = int(interface.get('mtu', ''))
        except ValueError:
            mtu = DEFAULT_MTU
        if not MIN_MTU <= mtu <= MAX_MTU:
            mtu = DEFAULT_MTU

        parsed = {}
        addresses = _split_list(interface.get('address', ''))
        if addresses:
            parsed['addresses'] = addresses

        return ParsedConfig(
            private_key=fields["PrivateKey"],
            public_key=fields["PublicKey"],
            endpoint=fields["Endpoint"],
            dns=interface.get('dns') or DEFAULT_DNS,
            mtu=mtu,
            **parsed
        )


def _split_list(value: str) -> List[str]:
    return [item.strip() for item in value.split(',') if item.strip()]


def extract_endpoint(content: str) -> Optional[str]:
    """Endpoint из строки 'Endpoint = host:port' или None"""
    match = re.search(r'^\s*Endpoint\s*=\s*(\S+)\s*$', content, re.MULTILINE | re.IGNORECASE)
    return match.group(1) if match else None


def extract_dns(content: str) -> List[str]:
    """Список DNS серверов из строки 'DNS = a, b'"""
    match = re.search(r'^\s*DNS\s*=\s*(.+?)\s*$', content, re.MULTILINE | re.IGNORECASE)
    return _split_list(match.group(1)) if match else []


def split_endpoint(endpoint: str, default_port: int = 2408) -> tuple:
    """'host:port' / '[v6]:port' -> (host, port)"""
    endpoint = endpoint.strip()
    if endpoint.startswith('['):
        host, _, rest = endpoint[1:].partition(']')
        port = rest.lstrip(':')
    elif endpoint.count(':') == 1:
        host, port = endpoint.split(':')
    else:
        host, port = endpoint, ''
    try:
        return host, int(port)
    except ValueError:
        return host, default_port
