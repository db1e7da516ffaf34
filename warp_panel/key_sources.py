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
Источники готовых Warp+ ключей

Замена захардкоженной таблицы "Telegram бота": ключи лежат в JSON файле,
который подключается через PREMIUM_KEYS_PATH. Настоящий клиент бота
можно подставить вместо StaticKeySource, не трогая синтезатор.

Формат файла:
    {
        "keys": [
            {"privateKey": "...", "publicKey": "...", "addresses": ["10.2.0.2/32"]}
        ],
        "endpoints": ["162.159.192.1:2408"]
    }
"""
import json
import logging
import threading
from pathlib import Path
from typing import Dict, List, Optional

from warp_panel.config import DEFAULT_ADDRESSES, PREMIUM_ENDPOINTS, PREMIUM_KEYS_PATH
from warp_panel.errors import ValidationError
from warp_panel.models import WarpKeys

logger = logging.getLogger(__name__)


class KeySource:
    """Интерфейс источника Warp+ ключей"""

    name = "premium"

    async def fetch(self) -> Optional[WarpKeys]:
        """Следующий набор ключей или None, если источник пуст"""
        raise NotImplementedError


class StaticKeySource(KeySource):
    """
    Ротация по фиксированному списку ключей.
    Endpoint-ы назначаются по кругу из отдельного списка.
    """

    name = "static"

    def __init__(self, entries: List[Dict], endpoints: Optional[List[str]] = None):
        self._entries = [self._normalize(entry) for entry in entries]
        self._endpoints = list(endpoints if endpoints is not None else PREMIUM_ENDPOINTS)
        self._position = 0
        self._lock = threading.Lock()

    @staticmethod
    def _normalize(entry: Dict) -> Dict:
        if not isinstance(entry, dict):
            raise ValidationError("Premium key entry must be an object")
        private_key = entry.get("privateKey") or entry.get("private_key")
        public_key = entry.get("publicKey") or entry.get("public_key")
        if not private_key or not public_key:
            raise ValidationError("Premium key entry requires privateKey and publicKey")
        return {
            "private_key": private_key,
            "public_key": public_key,
            "addresses": list(entry.get("addresses") or DEFAULT_ADDRESSES),
            "endpoint": entry.get("endpoint"),
        }

    @classmethod
    def from_file(cls, path: Path) -> "StaticKeySource":
        """Загрузка ключей из JSON файла"""
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)

        if not isinstance(data, dict):
            raise ValidationError("Premium keys file must contain a JSON object")
        keys = data.get("keys", [])
        endpoints = data.get("endpoints")
        if not isinstance(keys, list) or not (endpoints is None or isinstance(endpoints, list)):
            raise ValidationError("Premium keys file: 'keys' and 'endpoints' must be lists")
        return cls(keys, endpoints)

    def __len__(self) -> int:
        return len(self._entries)

    async def fetch(self) -> Optional[WarpKeys]:
        if not self._entries:
            return None

        with self._lock:
            index = self._position
            self._position += 1

        entry = self._entries[index % len(self._entries)]
        endpoint = self._endpoints[index % len(self._endpoints)] if self._endpoints else entry["endpoint"]
        if not endpoint:
            return None

        return WarpKeys(
            private_key=entry["private_key"],
            public_key=entry["public_key"],
            endpoint=endpoint,
            addresses=entry["addresses"],
            source="premium",
        )


def load_premium_source(path: str = PREMIUM_KEYS_PATH) -> Optional[KeySource]:
    """Источник из PREMIUM_KEYS_PATH или None, если файл не задан, не найден или битый"""
    if not path:
        return None

    keys_path = Path(path)
    if not keys_path.exists():
        logger.warning("Premium keys file not found: %s", keys_path)
        return None

    try:
        source = StaticKeySource.from_file(keys_path)
    except (OSError, ValueError, ValidationError) as e:
        # Битый файл отключает Warp+ источник, но не мешает запуску
        logger.error("Failed to load premium keys from %s: %s", keys_path, e)
        return None

    logger.info("Loaded %d premium key(s) from %s", len(source), keys_path)
    return source
