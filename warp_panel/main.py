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
Warp Panel - Главный модуль приложения
Генерация, хранение, проверка и скачивание конфигураций Cloudflare Warp на FastAPI

ОПТИМИЗАЦИИ:
- GZip compression для уменьшения размера ответов
- Timing middleware для замера производительности
"""
import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from warp_panel.config import APP_NAME, DEBUG, LOG_LEVEL, LOG_FILE, PANEL_VERSION, STORAGE_BACKEND, PROBER_MODE
from warp_panel.dependencies import get_config_service, reset_config_service
from warp_panel.errors import PanelError
from warp_panel.logger import setup_logging
from warp_panel.routes import configurations

logger = logging.getLogger(__name__)


class TimingMiddleware(BaseHTTPMiddleware):
    """
    Middleware для замера времени обработки запросов.
    Добавляет заголовок X-Process-Time в ответ.
    """
    async def dispatch(self, request: Request, call_next):
        start_time = time.perf_counter()
        response = await call_next(request)
        process_time = (time.perf_counter() - start_time) * 1000  # в мс
        response.headers["X-Process-Time"] = f"{process_time:.2f}ms"
        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Инициализация при старте приложения"""
    setup_logging(LOG_LEVEL, LOG_FILE)
    print("=" * 50)
    print(f"🚀 {APP_NAME} запускается...")

    get_config_service()
    print(f"✓ Хранилище: {STORAGE_BACKEND}")
    print(f"✓ Проверка конфигураций: {PROBER_MODE}")

    print("=" * 50)
    yield
    reset_config_service()
    print(f"👋 {APP_NAME} остановлена")


# Создание приложения
app = FastAPI(
    title=APP_NAME,
    description="Генератор конфигураций WireGuard для Cloudflare Warp",
    version=PANEL_VERSION,
    docs_url="/api/docs" if DEBUG else None,
    redoc_url=None,
    lifespan=lifespan
)

# ==================== Middleware ====================
# Порядок важен: первый добавленный - последний выполненный

# GZip сжатие для ответов > 500 байт
app.add_middleware(GZipMiddleware, minimum_size=500)

# Замер времени обработки
app.add_middleware(TimingMiddleware)

# Подключение роутов
app.include_router(configurations.router)


# ==================== API для проверки состояния ====================

@app.get("/api/health")
async def health_check():
    """Проверка состояния сервиса"""
    return {"status": "ok", "service": APP_NAME}


# ==================== Exception Handlers ====================
# Любой ответ с ошибкой - JSON вида {"error": "..."}

@app.exception_handler(PanelError)
async def panel_error_handler(request: Request, exc: PanelError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Некорректное тело запроса - 400, как и остальные ошибки валидации"""
    details = "; ".join(
        f"{'.'.join(str(part) for part in err.get('loc', ()) if part != 'body')}: {err.get('msg')}"
        for err in exc.errors()
    )
    return JSONResponse(status_code=400, content={"error": f"Invalid request: {details}"})


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})
