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
QR коды для импорта конфигурации в мобильный клиент WireGuard

ОПТИМИЗАЦИИ:
- LRU кэширование QR кодов
- Переиспользование объекта qrcode
"""
import hashlib
import io
import threading
from functools import lru_cache

import qrcode

from warp_panel.config import QR_CACHE_SIZE

# Переиспользуемый объект QR для экономии памяти
_qr_instance = None
_qr_lock = threading.Lock()


def _get_qr_instance():
    """Получить переиспользуемый QR instance"""
    global _qr_instance
    if _qr_instance is None:
        _qr_instance = qrcode.QRCode(
            version=1,
            error_correction=qrcode.constants.ERROR_CORRECT_L,  # Быстрее
            box_size=10,
            border=4
        )
    return _qr_instance


@lru_cache(maxsize=QR_CACHE_SIZE)
def _cached_qr_png(data_hash: str, data: str) -> bytes:
    """
    Кэшированная генерация QR кода.
    Используем hash в ключе для LRU cache (data может быть слишком длинной).
    """
    with _qr_lock:
        qr = _get_qr_instance()
        qr.clear()  # Очистка для переиспользования
        qr.add_data(data)
        qr.make(fit=True)
        img = qr.make_image(fill_color="black", back_color="white")

    buffer = io.BytesIO()
    img.save(buffer, format='PNG')
    return buffer.getvalue()


def generate_qr_png(data: str) -> bytes:
    """PNG с QR кодом (с кэшированием)"""
    data_hash = hashlib.md5(data.encode()).hexdigest()
    return _cached_qr_png(data_hash, data)
