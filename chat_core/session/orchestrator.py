"""请求编排：根据当前会话和用户输入构造请求，调用代理服务器并解释结果。

状态机：Idle -> InFlight -> Idle。同一时间只允许一个 InFlight 请求，
检查在编排器内部完成（GenerationGate），无论成功失败都会在返回前释放。
"""

import logging
import threading
import time
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Sequence, TypeVar

from chat_core.domain.exceptions import (
    ApiError,
    BusinessError,
    CredentialInvalidError,
    CredentialRequiredError,
    GenerationInProgressError,
)
from chat_core.domain.models import ChatReply, ImageReply, Message
from chat_core.infrastructure.logging.logger import log_event
from chat_core.providers.base import ChatBackend
from chat_core.providers.registry import ModelConfig, get_model_config
from chat_core.session.credentials import CredentialManager


T = TypeVar("T")


class GenerationGate:
    """生成中标志。非阻塞获取，已被占用时直接拒绝。"""

    def __init__(self):
        self._lock = threading.Lock()

    @property
    def in_flight(self) -> bool:
        return self._lock.locked()

    @contextmanager
    def hold(self) -> Iterator[None]:
        if not self._lock.acquire(blocking=False):
            raise GenerationInProgressError(code="GENERATION_IN_PROGRESS", message="A request is already in progress")
        try:
            yield
        finally:
            self._lock.release()


def build_chat_messages(history: Sequence[Message], user_text: str) -> List[Dict[str, str]]:
    """历史消息（过滤 system）+ 新的用户消息。"""

    messages = [m.to_payload() for m in history if m.role != "system"]
    messages.append({"role": "user", "content": user_text})
    return messages


class RequestOrchestrator:
    def __init__(
        self,
        backend: ChatBackend,
        credentials: CredentialManager,
        gate: GenerationGate | None = None,
        model_lookup: Callable[[str], ModelConfig] = get_model_config,
    ):
        self._backend = backend
        self._credentials = credentials
        self._gate = gate or GenerationGate()
        self._model_lookup = model_lookup

    @property
    def gate(self) -> GenerationGate:
        return self._gate

    @property
    def in_flight(self) -> bool:
        return self._gate.in_flight

    # ---- 三种远端操作 ----

    def chat(self, history: Sequence[Message], user_text: str, model: str, json_mode: bool = False) -> ChatReply:
        def call(api_key: str) -> ChatReply:
            payload = self.build_chat_payload(history, user_text, model, json_mode, api_key)
            return self._backend.chat(payload)

        return self._dispatch("chat", call, model=model, history=len(history))

    def generate_image(self, prompt: str, size: str, quality: str) -> ImageReply:
        def call(api_key: str) -> ImageReply:
            payload = {"prompt": prompt, "size": size, "quality": quality, "apiKey": api_key}
            return self._backend.generate_image(payload)

        return self._dispatch("generate_image", call, size=size, quality=quality)

    def edit_image(self, image: bytes, filename: str, prompt: str) -> ImageReply:
        def call(api_key: str) -> ImageReply:
            return self._backend.edit_image(image, filename, prompt, api_key)

        return self._dispatch("edit_image", call, image_bytes=len(image))

    # ---- 辅助方法 ----

    def build_chat_payload(
        self,
        history: Sequence[Message],
        user_text: str,
        model: str,
        json_mode: bool,
        api_key: str,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "messages": build_chat_messages(history, user_text),
            "model": model,
            "apiKey": api_key,
        }
        if json_mode and self._model_lookup(model).supports_json:
            payload["format"] = "json"
        return payload

    def _dispatch(self, op: str, call: Callable[[str], T], **fields: Any) -> T:
        with self._gate.hold():
            api_key = self._credentials.current
            if not api_key:
                raise CredentialRequiredError(code="MISSING_API_KEY", message="Please configure your API key first")
            start = time.time()
            log_event(logging.INFO, "Dispatching request", op=op, **fields)
            try:
                result = call(api_key)
            except BusinessError as e:
                log_event(
                    logging.WARNING,
                    "Request failed",
                    op=op,
                    code=e.code,
                    status=e.http_status,
                    error=e.message,
                )
                if isinstance(e, ApiError) and e.http_status == 401:
                    self._credentials.clear()
                    raise CredentialInvalidError(
                        code="INVALID_API_KEY",
                        message="API key invalid. Please update your API key.",
                        http_status=401,
                    ) from e
                raise
            log_event(logging.INFO, "Request completed", op=op, elapsed_seconds=round(time.time() - start, 2))
            return result
