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

"""Настройка логирования"""
import logging
import sys
from pathlib import Path


def setup_logging(level: str = "INFO", log_file_path: str = "") -> None:
    """Конфигурация stdlib logging для всего приложения"""
    log_level = getattr(logging, level.upper(), logging.INFO)

    handlers: list = [logging.StreamHandler(sys.stdout)]
    if log_file_path:
        Path(log_file_path).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file_path))

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        handlers=handlers,
        force=True,
    )

    # httpx пишет каждый запрос на INFO - слишком шумно для регистрации с ретраями
    logging.getLogger("httpx").setLevel(max(log_level, logging.WARNING))
