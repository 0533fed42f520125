"""代理服务器客户端抽象接口。

RequestOrchestrator 不直接依赖 httpx，而是依赖此协议：

- ProxyClient 是基于 httpx 的默认实现。
- 测试中可以用简单的 Fake 对象替换，无需网络。
"""

from typing import Any, Dict, Protocol

from chat_core.domain.models import ChatReply, ImageReply


class ChatBackend(Protocol):
    """代理服务器协议。

    实现者需要提供：
    - chat(payload): 执行一次非流式对话，返回 ChatReply。
    - generate_image / edit_image: 返回 ImageReply。
    - validate_key(api_key): 校验凭证，失败时抛出 BusinessError。

    所有失败都以 chat_core.domain.exceptions 中的异常抛出，
    ApiError.http_status 保留服务器的状态码（401 表示凭证无效）。
    """

    def chat(self, payload: Dict[str, Any]) -> ChatReply:
        ...

    def generate_image(self, payload: Dict[str, Any]) -> ImageReply:
        ...

    def edit_image(self, image: bytes, filename: str, prompt: str, api_key: str) -> ImageReply:
        ...

    def validate_key(self, api_key: str) -> None:
        ...

