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
Pydantic модели для валидации данных

JSON наружу отдаётся в camelCase (alias), внутри используются snake_case поля.
"""
import json
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, computed_field

from warp_panel.config import (
    DEFAULT_DNS,
    DEFAULT_MTU,
    DEFAULT_ADDRESSES,
    MIN_MTU,
    MAX_MTU,
    BATCH_DEFAULT_COUNT,
)


# Статусы проверки конфигурации
STATUS_UNTESTED = "untested"
STATUS_VALID = "valid"
STATUS_INVALID = "invalid"


# ==================== Модели WireGuard ====================

class WarpKeys(BaseModel):
    """Результат синтезатора: ключи, endpoint и адреса интерфейса"""
    private_key: str
    public_key: str
    endpoint: str
    addresses: List[str] = Field(default_factory=lambda: list(DEFAULT_ADDRESSES))
    # remote - регистрация через API, premium - источник Warp+, fallback - локальная заглушка
    source: str = "remote"


class ParsedConfig(BaseModel):
    """Поля, извлечённые из загруженного .conf файла"""
    private_key: str
    public_key: str
    endpoint: str
    addresses: List[str] = Field(default_factory=lambda: list(DEFAULT_ADDRESSES))
    dns: str = DEFAULT_DNS
    mtu: int = DEFAULT_MTU

    def to_keys(self) -> WarpKeys:
        return WarpKeys(
            private_key=self.private_key,
            public_key=self.public_key,
            endpoint=self.endpoint,
            addresses=self.addresses,
            source="uploaded",
        )


class TestResult(BaseModel):
    """Результат проверки конфигурации (в БД хранится только JSON)"""
    connection_test: bool = Field(False, alias="connectionTest")
    speed_test: Optional[float] = Field(None, alias="speedTest")  # Мбит/с
    dns_resolution: bool = Field(False, alias="dnsResolution")
    latency: Optional[float] = None  # мс
    error: Optional[str] = None

    class Config:
        populate_by_name = True

    @property
    def is_valid(self) -> bool:
        return self.connection_test and self.dns_resolution

    def to_api(self) -> dict:
        data = self.model_dump(by_alias=True)
        # error присутствует только если проверка не смогла запуститься
        if data.get("error") is None:
            data.pop("error", None)
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_api())


# ==================== Модели хранилища ====================

class ConfigurationCreate(BaseModel):
    """Данные для создания записи. is_valid/test_results выставляет только проверка"""
    name: str
    private_key: str
    public_key: str
    endpoint: str
    dns: str = DEFAULT_DNS
    mtu: int = Field(DEFAULT_MTU, ge=MIN_MTU, le=MAX_MTU)
    warp_plus: bool = False
    region: str = "auto"
    addresses: List[str] = Field(default_factory=lambda: list(DEFAULT_ADDRESSES))


class Configuration(BaseModel):
    """Сохранённая конфигурация"""
    id: int
    name: str
    private_key: str = Field(..., alias="privateKey")
    public_key: str = Field(..., alias="publicKey")
    endpoint: str
    dns: str = DEFAULT_DNS
    mtu: int = DEFAULT_MTU
    warp_plus: bool = Field(False, alias="warpPlus")
    is_valid: bool = Field(False, alias="isValid")
    test_results: Optional[str] = Field(None, alias="testResults")
    region: str = "auto"
    addresses: List[str] = Field(default_factory=lambda: list(DEFAULT_ADDRESSES))
    created_at: datetime = Field(..., alias="createdAt")

    class Config:
        populate_by_name = True

    @computed_field
    @property
    def status(self) -> str:
        """Три состояния вместо двух: никогда не проверялась / валидна / невалидна"""
        if self.test_results is None:
            return STATUS_UNTESTED
        return STATUS_VALID if self.is_valid else STATUS_INVALID

    def to_keys(self) -> WarpKeys:
        return WarpKeys(
            private_key=self.private_key,
            public_key=self.public_key,
            endpoint=self.endpoint,
            addresses=self.addresses,
        )

    def to_api(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


# ==================== Модели запросов API ====================

class GenerateRequest(BaseModel):
    region: str = "auto"
    dns: str = DEFAULT_DNS
    mtu: int = Field(DEFAULT_MTU, ge=MIN_MTU, le=MAX_MTU)
    warp_plus: bool = Field(False, alias="warpPlus")

    class Config:
        populate_by_name = True


class TestRequest(BaseModel):
    config_id: int = Field(..., alias="configId")

    class Config:
        populate_by_name = True


class BatchRequest(BaseModel):
    count: int = Field(BATCH_DEFAULT_COUNT, ge=1)
    dns: str = DEFAULT_DNS
    mtu: int = Field(DEFAULT_MTU, ge=MIN_MTU, le=MAX_MTU)


class UploadRequest(BaseModel):
    content: str = Field(..., min_length=1)
