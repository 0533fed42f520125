import logging
from typing import Optional

from chat_core.domain.conversation import API_KEY_KEY, KeyValueStore
from chat_core.domain.exceptions import ValidationError
from chat_core.infrastructure.logging.logger import log_event
from chat_core.providers.base import ChatBackend


class CredentialManager:
    """本地缓存的 API Key。只有经过服务器校验的 key 才会被保存。"""

    def __init__(self, kv: KeyValueStore, backend: ChatBackend):
        self._kv = kv
        self._backend = backend
        self._api_key: Optional[str] = None

    def load(self) -> Optional[str]:
        self._api_key = self._kv.get(API_KEY_KEY) or None
        return self._api_key

    @property
    def current(self) -> Optional[str]:
        return self._api_key

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    def validate_and_save(self, api_key: str) -> None:
        """调用 /api/validate-key，成功后持久化；失败时原样抛出 BusinessError。"""

        candidate = (api_key or "").strip()
        if not candidate:
            raise ValidationError(code="MISSING_API_KEY", message="Please enter your API key")
        self._backend.validate_key(candidate)
        self._kv.set(API_KEY_KEY, candidate)
        self._api_key = candidate
        log_event(logging.INFO, "API key validated and saved")

    def clear(self) -> None:
        self._api_key = None
        self._kv.delete(API_KEY_KEY)
        log_event(logging.WARNING, "API key cleared")
