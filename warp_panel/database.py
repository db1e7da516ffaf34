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
Хранилище конфигураций

Два взаимозаменяемых бэкенда за одним интерфейсом ConfigurationStore:
- MemoryConfigurationStore - словарь в памяти процесса
- SQLiteConfigurationStore - таблица configurations в SQLite

ОПТИМИЗАЦИИ (SQLite):
- Connection pooling через queue
- WAL режим для лучшего concurrency
- Индексы под сортировку по дате и выборку невалидных
"""
import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from queue import Queue, Empty, Full
from typing import Dict, List, Optional

from warp_panel.config import MIN_MTU, MAX_MTU
from warp_panel.errors import ValidationError
from warp_panel.models import Configuration, ConfigurationCreate


# Поля, которые можно менять через update()
UPDATABLE_FIELDS = {
    "name", "private_key", "public_key", "endpoint", "dns", "mtu",
    "warp_plus", "is_valid", "test_results", "region", "addresses",
}
IMMUTABLE_FIELDS = {"id", "created_at"}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def check_updates(updates: Dict):
    """Проверка набора полей для update()"""
    for key in updates:
        if key in IMMUTABLE_FIELDS:
            raise ValidationError(f"Field '{key}' cannot be changed")
        if key not in UPDATABLE_FIELDS:
            raise ValidationError(f"Unknown configuration field '{key}'")

    if "mtu" in updates:
        mtu = updates["mtu"]
        if isinstance(mtu, bool) or not isinstance(mtu, int) or not MIN_MTU <= mtu <= MAX_MTU:
            raise ValidationError(f"MTU must be between {MIN_MTU} and {MAX_MTU}")

    # Результат проверки и флаг валидности выставляются только вместе
    if ("is_valid" in updates) != ("test_results" in updates):
        raise ValidationError("is_valid and test_results must be updated together")


class ConfigurationStore(ABC):
    """CRUD над конфигурациями по целочисленному id"""

    @abstractmethod
    def create(self, data: ConfigurationCreate) -> Configuration:
        """Новая запись: is_valid=False, test_results=None, created_at=сейчас"""

    @abstractmethod
    def get(self, config_id: int) -> Optional[Configuration]:
        """Запись или None (не бросает исключений для отсутствующего id)"""

    @abstractmethod
    def list(self) -> List[Configuration]:
        """Все записи, новые первыми"""

    @abstractmethod
    def update(self, config_id: int, updates: Dict) -> Optional[Configuration]:
        """Частичное обновление. None если записи нет (новая не создаётся)"""

    @abstractmethod
    def delete(self, config_id: int) -> bool:
        """True если запись была удалена"""

    @abstractmethod
    def delete_invalid(self) -> int:
        """Атомарно удалить все записи с is_valid=False, вернуть количество"""

    def close(self):
        pass


# ==================== In-memory ====================

class MemoryConfigurationStore(ConfigurationStore):
    """Словарь + монотонный счётчик под одним локом"""

    def __init__(self):
        self._items: Dict[int, Configuration] = {}
        self._next_id = 1
        self._lock = threading.Lock()

    def create(self, data: ConfigurationCreate) -> Configuration:
        with self._lock:
            config = Configuration(
                id=self._next_id,
                created_at=_utcnow(),
                is_valid=False,
                test_results=None,
                **data.model_dump()
            )
            self._items[config.id] = config
            self._next_id += 1
            return config.model_copy(deep=True)

    def get(self, config_id: int) -> Optional[Configuration]:
        with self._lock:
            config = self._items.get(config_id)
            return config.model_copy(deep=True) if config else None

    def list(self) -> List[Configuration]:
        with self._lock:
            items = [c.model_copy(deep=True) for c in self._items.values()]
        items.sort(key=lambda c: (c.created_at, c.id), reverse=True)
        return items

    def update(self, config_id: int, updates: Dict) -> Optional[Configuration]:
        check_updates(updates)
        with self._lock:
            existing = self._items.get(config_id)
            if existing is None:
                return None
            merged = existing.model_dump()
            merged.update(updates)
            updated = Configuration(**merged)
            self._items[config_id] = updated
            return updated.model_copy(deep=True)

    def delete(self, config_id: int) -> bool:
        with self._lock:
            return self._items.pop(config_id, None) is not None

    def delete_invalid(self) -> int:
        with self._lock:
            invalid = [cid for cid, c in self._items.items() if not c.is_valid]
            for cid in invalid:
                del self._items[cid]
            return len(invalid)


# ==================== SQLite ====================

class ConnectionPool:
    """
    Пул соединений SQLite для улучшения производительности.
    Избегает накладных расходов на создание/закрытие соединений.
    """

    def __init__(self, database_path: Path, pool_size: int = 5):
        self.database_path = Path(database_path)
        self.pool_size = pool_size
        self._pool: Queue = Queue(maxsize=pool_size)

        # Предварительное создание соединений
        for _ in range(pool_size):
            self._pool.put(self._create_connection())

    def _create_connection(self) -> sqlite3.Connection:
        """Создание оптимизированного соединения"""
        conn = sqlite3.connect(
            str(self.database_path),
            check_same_thread=False,  # Для пула
            isolation_level=None,     # Autocommit, транзакции открываем явно
            timeout=30.0              # Таймаут ожидания блокировки
        )
        conn.row_factory = sqlite3.Row

        # Оптимизации SQLite
        conn.execute("PRAGMA journal_mode=WAL")        # Write-Ahead Logging
        conn.execute("PRAGMA synchronous=NORMAL")       # Баланс скорости/надёжности
        conn.execute("PRAGMA temp_store=MEMORY")        # Temp tables в памяти

        return conn

    def get_connection(self) -> sqlite3.Connection:
        """Получить соединение из пула"""
        try:
            return self._pool.get(timeout=5.0)
        except Empty:
            # Пул исчерпан - создаём новое соединение
            return self._create_connection()

    def return_connection(self, conn: sqlite3.Connection):
        """Вернуть соединение в пул"""
        try:
            self._pool.put_nowait(conn)
        except Full:
            # Пул полон - закрываем соединение
            conn.close()

    def close_all(self):
        """Закрыть все соединения в пуле"""
        while not self._pool.empty():
            try:
                conn = self._pool.get_nowait()
                conn.close()
            except Empty:
                break

    @contextmanager
    def transaction(self):
        """Соединение из пула внутри одной транзакции"""
        conn = self.get_connection()
        try:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
                conn.execute("COMMIT")
            except Exception:
                conn.execute("ROLLBACK")
                raise
        finally:
            self.return_connection(conn)


_COLUMNS = (
    "name", "private_key", "public_key", "endpoint", "dns", "mtu",
    "warp_plus", "is_valid", "test_results", "region", "addresses", "created_at",
)


class SQLiteConfigurationStore(ConfigurationStore):
    """Таблица configurations в SQLite"""

    def __init__(self, database_path: Path, pool_size: int = 5):
        self._pool = ConnectionPool(database_path, pool_size)
        self.init_schema()

    def init_schema(self):
        with self._pool.transaction() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS configurations (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    private_key TEXT NOT NULL,
                    public_key TEXT NOT NULL,
                    endpoint TEXT NOT NULL,
                    dns TEXT NOT NULL DEFAULT '1.1.1.1, 1.0.0.1',
                    mtu INTEGER NOT NULL DEFAULT 1280,
                    warp_plus BOOLEAN NOT NULL DEFAULT 0,
                    is_valid BOOLEAN NOT NULL DEFAULT 0,
                    test_results TEXT,
                    region TEXT NOT NULL DEFAULT 'auto',
                    addresses TEXT NOT NULL DEFAULT '',
                    created_at TEXT NOT NULL
                )
            """)
            # ОПТИМИЗАЦИЯ: индексы под list() и delete_invalid()
            conn.execute("CREATE INDEX IF NOT EXISTS idx_configurations_created ON configurations(created_at)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_configurations_is_valid ON configurations(is_valid)")

    @staticmethod
    def _to_row(values: Dict) -> Dict:
        row = dict(values)
        if "addresses" in row:
            row["addresses"] = ", ".join(row["addresses"])
        if "created_at" in row:
            row["created_at"] = row["created_at"].isoformat(timespec="microseconds")
        for flag in ("warp_plus", "is_valid"):
            if flag in row:
                row[flag] = int(bool(row[flag]))
        return row

    @staticmethod
    def _from_row(row: sqlite3.Row) -> Configuration:
        data = dict(row)
        data["addresses"] = [a.strip() for a in (data["addresses"] or "").split(",") if a.strip()]
        data["created_at"] = datetime.fromisoformat(data["created_at"])
        data["warp_plus"] = bool(data["warp_plus"])
        data["is_valid"] = bool(data["is_valid"])
        return Configuration(**data)

    def _select(self, conn: sqlite3.Connection, config_id: int) -> Optional[Configuration]:
        row = conn.execute("SELECT * FROM configurations WHERE id = ?", (config_id,)).fetchone()
        return self._from_row(row) if row else None

    def create(self, data: ConfigurationCreate) -> Configuration:
        values = data.model_dump()
        values.update(is_valid=False, test_results=None, created_at=_utcnow())
        row = self._to_row(values)

        with self._pool.transaction() as conn:
            cursor = conn.execute(
                f"INSERT INTO configurations ({', '.join(_COLUMNS)}) "
                f"VALUES ({', '.join('?' for _ in _COLUMNS)})",
                [row[column] for column in _COLUMNS]
            )
            return self._select(conn, cursor.lastrowid)

    def get(self, config_id: int) -> Optional[Configuration]:
        conn = self._pool.get_connection()
        try:
            return self._select(conn, config_id)
        finally:
            self._pool.return_connection(conn)

    def list(self) -> List[Configuration]:
        conn = self._pool.get_connection()
        try:
            rows = conn.execute(
                "SELECT * FROM configurations ORDER BY created_at DESC, id DESC"
            ).fetchall()
            return [self._from_row(row) for row in rows]
        finally:
            self._pool.return_connection(conn)

    def update(self, config_id: int, updates: Dict) -> Optional[Configuration]:
        check_updates(updates)
        with self._pool.transaction() as conn:
            if not updates:
                return self._select(conn, config_id)

            row = self._to_row(updates)
            # Собираем обновления в один запрос
            set_clauses = [f"{key} = ?" for key in row]
            params = list(row.values()) + [config_id]
            cursor = conn.execute(
                f"UPDATE configurations SET {', '.join(set_clauses)} WHERE id = ?",
                params
            )
            if cursor.rowcount == 0:
                return None
            return self._select(conn, config_id)

    def delete(self, config_id: int) -> bool:
        with self._pool.transaction() as conn:
            cursor = conn.execute("DELETE FROM configurations WHERE id = ?", (config_id,))
            return cursor.rowcount > 0

    def delete_invalid(self) -> int:
        # Одна инструкция в одной транзакции - удаление атомарно
        with self._pool.transaction() as conn:
            cursor = conn.execute("DELETE FROM configurations WHERE is_valid = 0")
            return cursor.rowcount

    def close(self):
        self._pool.close_all()
