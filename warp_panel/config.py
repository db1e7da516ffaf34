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
Конфигурация приложения Warp Panel
Все настройки можно переопределить через переменные окружения
"""
import os
from pathlib import Path

from dotenv import load_dotenv

# Загрузка переменных окружения из .env файла
load_dotenv()


def _env_list(name: str, default: str) -> list:
    """Список значений через запятую из переменной окружения"""
    raw = os.getenv(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


# ==================== Базовые пути ====================
BASE_DIR = Path(__file__).resolve().parent.parent
DATA_DIR = Path(os.getenv("DATA_DIR", str(BASE_DIR / "data")))
DATA_DIR.mkdir(exist_ok=True)

# ==================== Хранилище ====================
# sqlite - таблица в SQLite, memory - словарь в памяти процесса
STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "sqlite").lower()
DATABASE_PATH = Path(os.getenv("DATABASE_PATH", str(DATA_DIR / "configurations.db")))

# ==================== Сервер ====================
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "5000"))
DEBUG = os.getenv("DEBUG", "false").lower() == "true"

# ==================== Версия / брендинг ====================
APP_NAME = os.getenv("APP_NAME", "Warp Panel")
PANEL_VERSION = os.getenv("PANEL_VERSION", "1.0.0")
# Префикс имён файлов конфигураций (XO-config-<ms>.conf)
CONFIG_NAME_PREFIX = os.getenv("CONFIG_NAME_PREFIX", "XO")

# ==================== WireGuard настройки по умолчанию ====================
DEFAULT_DNS = os.getenv("DEFAULT_DNS", "1.1.1.1, 1.0.0.1")
DEFAULT_MTU = int(os.getenv("DEFAULT_MTU", "1280"))
MIN_MTU = int(os.getenv("MIN_MTU", "1200"))
MAX_MTU = int(os.getenv("MAX_MTU", "1500"))
DEFAULT_ALLOWED_IPS = os.getenv("DEFAULT_ALLOWED_IPS", "0.0.0.0/0, ::/0")
DEFAULT_PERSISTENT_KEEPALIVE = int(os.getenv("DEFAULT_PERSISTENT_KEEPALIVE", "25"))
DEFAULT_ADDRESSES = _env_list(
    "DEFAULT_ADDRESSES",
    "10.2.0.2/32, fd01:5ca1:ab1e:8061:84f1:8b0b:8c1f:4d76/128"
)

# ==================== Cloudflare Warp ====================
# Порядок важен: пробуем по очереди, первый успешный ответ побеждает
WARP_API_ENDPOINTS = _env_list(
    "WARP_API_ENDPOINTS",
    "https://api.cloudflareclient.com/v0a745,"
    "https://api.cloudflareclient.workers.dev/v0a745,"
    "https://warp-api.fly.dev/v0a745"
)
WARP_API_TIMEOUT = float(os.getenv("WARP_API_TIMEOUT", "10"))
# Публичный ключ пира Cloudflare (одинаковый для всех аккаунтов Warp)
WARP_PEER_PUBLIC_KEY = os.getenv("WARP_PEER_PUBLIC_KEY", "bmXOC+F1FxEMF9dyiK2H5/1SUtzH0JuVo51h2wPfgyo=")
# Endpoint-ы для локально синтезированных конфигов, когда API недоступен
WARP_ALTERNATE_ENDPOINTS = _env_list(
    "WARP_ALTERNATE_ENDPOINTS",
    "162.159.192.1:2408, 162.159.193.1:2408, 162.159.195.1:2408, "
    "188.114.96.1:2408, 188.114.97.1:2408, engage.cloudflare.com:2408, "
    "engage.cloudflare.com:500, engage.cloudflare.com:1701, engage.cloudflare.com:4500"
)

# Регион -> endpoint. Неизвестный регион = auto
REGION_ENDPOINTS = {
    "auto": "engage.cloudflare.com:2408",
    "us-east": "engage.cloudflare.com:2408",
    "us-west": "engage.cloudflare.com:2408",
    "eu-central": "engage.cloudflare.com:2408",
    "asia-pacific": "engage.cloudflare.com:2408",
}

# ==================== Warp+ источник ключей ====================
# JSON файл с готовыми Warp+ ключами. Пусто = источник отключён
PREMIUM_KEYS_PATH = os.getenv("PREMIUM_KEYS_PATH", "")
PREMIUM_ENDPOINTS = _env_list(
    "PREMIUM_ENDPOINTS",
    "162.159.192.1:2408, 162.159.193.1:2408, 162.159.195.1:2408, "
    "188.114.96.1:2408, 188.114.97.1:2408, engage.cloudflare.com:500, "
    "engage.cloudflare.com:1701, engage.cloudflare.com:4500"
)

# ==================== Проверка конфигураций ====================
# network - реальные проверки, simulated - случайные результаты (для разработки)
PROBER_MODE = os.getenv("PROBER_MODE", "network").lower()
PROBE_TIMEOUT = float(os.getenv("PROBE_TIMEOUT", "8"))
DNS_TEST_DOMAIN = os.getenv("DNS_TEST_DOMAIN", "cloudflare.com")
SPEED_TEST_URL = os.getenv("SPEED_TEST_URL", "https://speed.cloudflare.com/__down?bytes=2000000")
SPEED_TEST_TIMEOUT = float(os.getenv("SPEED_TEST_TIMEOUT", "15"))

# ==================== Пакетная генерация ====================
BATCH_MAX_COUNT = int(os.getenv("BATCH_MAX_COUNT", "10"))
BATCH_DEFAULT_COUNT = int(os.getenv("BATCH_DEFAULT_COUNT", "5"))
BATCH_DELAY = float(os.getenv("BATCH_DELAY", "0.1"))  # секунды между записями

# ==================== Кэширование ====================
QR_CACHE_SIZE = int(os.getenv("QR_CACHE_SIZE", "100"))  # Размер LRU кэша для QR кодов

# ==================== Логирование ====================
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", "")  # пусто = только stdout
