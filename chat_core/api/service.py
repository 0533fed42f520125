"""对外 API 服务模块。

提供组装好的会话对象供上层应用（GUI、脚本）调用。
每次调用都返回新的实例，不持有全局状态。
"""

from typing import Optional

from chat_core.config.settings import Settings, settings
from chat_core.domain.conversation import KeyValueStore
from chat_core.infrastructure.storage.conversation_store import ConversationStore
from chat_core.infrastructure.storage.kv_store import JsonFileKeyValueStore
from chat_core.providers import create_backend
from chat_core.providers.base import ChatBackend
from chat_core.rendering.presenter import TypingPresenter
from chat_core.session.controller import UIController
from chat_core.session.credentials import CredentialManager
from chat_core.session.orchestrator import RequestOrchestrator
from chat_core.session.session import ChatSession


def build_session(
    cfg: Optional[Settings] = None,
    kv: Optional[KeyValueStore] = None,
    backend: Optional[ChatBackend] = None,
    presenter: Optional[TypingPresenter] = None,
) -> ChatSession:
    """按配置组装 ChatSession。

    Args:
        cfg: 配置（可选，默认全局 settings）
        kv: 本地键值存储（可选，默认 JSON 文件）
        backend: 代理服务器客户端（可选，默认 ProxyClient）
        presenter: 打字效果（可选）

    Returns:
        尚未 start() 的 ChatSession
    """
    cfg = cfg or settings
    kv = kv or JsonFileKeyValueStore(cfg.storage_path)
    backend = backend or create_backend(cfg)
    credentials = CredentialManager(kv, backend)
    return ChatSession(
        store=ConversationStore(kv),
        credentials=credentials,
        orchestrator=RequestOrchestrator(backend, credentials),
        presenter=presenter or TypingPresenter(enabled=cfg.typing_enabled),
        cfg=cfg,
    )


def build_controller(cfg: Optional[Settings] = None, presenter: Optional[TypingPresenter] = None) -> UIController:
    """组装 UIController，backend 同时用于会话与健康检查。"""
    cfg = cfg or settings
    backend = create_backend(cfg)
    session = build_session(cfg, backend=backend, presenter=presenter)
    return UIController(session, backend=backend, cfg=cfg)
