"""Chat Studio 客户端顶层包。

该包提供多会话聊天客户端的核心实现，
包括配置加载、领域模型、代理服务器客户端、会话存储、
消息渲染、打字效果与界面控制器等能力。
"""

from chat_core.api.service import build_controller, build_session

__all__ = ["build_controller", "build_session"]
