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
Исключения панели и их HTTP статусы
"""


class PanelError(Exception):
    """Базовая ошибка панели. status_code используется обработчиком в main.py"""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(PanelError):
    """Некорректный запрос или загруженный конфиг без обязательных полей"""
    status_code = 400


class NotFoundError(PanelError):
    """Конфигурация с таким id не существует"""
    status_code = 404


class UpstreamUnavailable(PanelError):
    """Все endpoint-ы регистрации Warp недоступны.
    Наружу не выходит: синтезатор перехватывает и делает fallback."""
    status_code = 503
