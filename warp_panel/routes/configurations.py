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
Роуты API конфигураций Warp
"""
from fastapi import APIRouter, Depends
from fastapi.responses import Response

from warp_panel.models import GenerateRequest, TestRequest, BatchRequest, UploadRequest
from warp_panel.qr import generate_qr_png
from warp_panel.services import ConfigService
from warp_panel.dependencies import get_config_service

router = APIRouter(prefix="/api/configurations", tags=["configurations"])


@router.get("")
async def list_configurations(service: ConfigService = Depends(get_config_service)):
    """Все конфигурации, новые первыми"""
    return [config.to_api() for config in service.list()]


@router.post("/generate")
async def generate_configuration(
    data: GenerateRequest,
    service: ConfigService = Depends(get_config_service)
):
    """Генерация и сохранение одной конфигурации"""
    generated = await service.generate(
        region=data.region,
        dns=data.dns,
        mtu=data.mtu,
        warp_plus=data.warp_plus
    )
    return generated.to_api()


@router.post("/test")
async def test_configuration(
    data: TestRequest,
    service: ConfigService = Depends(get_config_service)
):
    """Проверка конфигурации. Неудачная проверка - это 200 с isValid=false"""
    config, result = await service.test(data.config_id)
    return {
        "configuration": config.to_api(),
        "testResults": result.to_api()
    }


@router.post("/telegram-batch")
async def batch_generate(
    data: BatchRequest,
    service: ConfigService = Depends(get_config_service)
):
    """Пакетная генерация Warp+ конфигураций"""
    generated = await service.batch(count=data.count, dns=data.dns, mtu=data.mtu)
    return {
        "success": True,
        "count": len(generated),
        "configurations": [item.to_api() for item in generated]
    }


@router.post("/upload")
async def upload_configuration(
    data: UploadRequest,
    service: ConfigService = Depends(get_config_service)
):
    """Загрузка готового .conf файла"""
    config = service.upload(data.content)
    return {
        "success": True,
        "configuration": config.to_api(),
        "message": "Configuration uploaded successfully"
    }


# Объявлен до /{config_id}, иначе "invalid" уйдёт в параметр пути
@router.delete("/invalid")
async def delete_invalid_configurations(service: ConfigService = Depends(get_config_service)):
    """Удаление всех невалидных (и непроверенных) конфигураций"""
    return {"deletedCount": service.delete_invalid()}


@router.get("/{config_id}")
async def get_configuration(config_id: int, service: ConfigService = Depends(get_config_service)):
    return service.get(config_id).to_api()


@router.get("/{config_id}/download")
async def download_configuration(config_id: int, service: ConfigService = Depends(get_config_service)):
    """Скачивание .conf файла"""
    config = service.get(config_id)
    return Response(
        content=service.render(config),
        media_type="application/octet-stream",
        headers={"Content-Disposition": f'attachment; filename="{config.name}"'}
    )


@router.get("/{config_id}/qr")
async def configuration_qr(config_id: int, service: ConfigService = Depends(get_config_service)):
    """QR код конфига для импорта в мобильный клиент WireGuard"""
    config = service.get(config_id)
    return Response(content=generate_qr_png(service.render(config)), media_type="image/png")


@router.delete("/{config_id}")
async def delete_configuration(config_id: int, service: ConfigService = Depends(get_config_service)):
    service.delete(config_id)
    return {"success": True}
