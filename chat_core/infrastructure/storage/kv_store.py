import json
import logging
import os
from pathlib import Path
from typing import Dict, Optional
from uuid import uuid4

from chat_core.config.settings import settings
from chat_core.domain.conversation import KeyValueStore
from chat_core.domain.exceptions import StoreWriteError
from chat_core.infrastructure.logging.logger import log_event


class JsonFileKeyValueStore(KeyValueStore):
    """把所有键值对保存在一个 JSON 文件中，每次 set 都整体覆盖写入。"""

    def __init__(self, path: str | Path | None = None):
        self._path = Path(path or settings.storage_path).resolve()
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._data: Dict[str, str] = self._read()

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        data = dict(self._data)
        data[key] = value
        self._write(data)
        self._data = data

    def delete(self, key: str) -> None:
        if key not in self._data:
            return
        data = dict(self._data)
        del data[key]
        self._write(data)
        self._data = data

    def _read(self) -> Dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            log_event(logging.WARNING, "Local storage unreadable, starting empty", path=str(self._path), error=str(e))
            return {}
        if not isinstance(data, dict):
            log_event(logging.WARNING, "Local storage is not a mapping, starting empty", path=str(self._path))
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _write(self, data: Dict[str, str]) -> None:
        tmp_path = self._path.with_name(f"{self._path.name}.{uuid4().hex}.tmp")
        try:
            tmp_path.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
            os.replace(tmp_path, self._path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise StoreWriteError(code="STORE_WRITE_ERROR", message=str(e), path=str(self._path))


class InMemoryKeyValueStore(KeyValueStore):
    """进程内存版本，主要用于测试。"""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)
