"""代理服务器集成层。

该包下的模块负责：
- 定义客户端抽象接口 (base)。
- 维护模型能力目录 (registry)。
- 提供基于 httpx 的具体实现 (proxy_client)。
"""

from chat_core.config.settings import settings
from chat_core.providers.base import ChatBackend
from chat_core.providers.proxy_client import ProxyClient


def create_backend(cfg=None) -> ChatBackend:
    """根据配置创建代理服务器客户端，默认取全局 settings。"""

    return ProxyClient(cfg or settings)
