#!/usr/bin/env python3
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
Точка входа для запуска Warp Panel
"""
import uvicorn

from warp_panel.config import HOST, PORT, DEBUG, LOG_LEVEL, LOG_FILE, PANEL_VERSION
from warp_panel.logger import setup_logging

if __name__ == "__main__":
    print(f"""
    ╔═══════════════════════════════════════════════════════╗
    ║           🔐 Warp Panel v{PANEL_VERSION:<29}║
    ║      Генератор конфигураций Cloudflare Warp           ║
    ╚═══════════════════════════════════════════════════════╝
    """)

    setup_logging(LOG_LEVEL, LOG_FILE)

    uvicorn.run(
        "warp_panel.main:app",
        host=HOST,
        port=PORT,
        reload=DEBUG,
        access_log=True,
        proxy_headers=True,
        forwarded_allow_ips="*"
    )
