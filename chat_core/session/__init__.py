"""会话层：凭证、请求编排、聊天会话与界面控制器。"""

from .controller import UIController
from .credentials import CredentialManager
from .orchestrator import GenerationGate, RequestOrchestrator
from .session import ChatSession, SendOutcome

__all__ = [
    "ChatSession",
    "CredentialManager",
    "GenerationGate",
    "RequestOrchestrator",
    "SendOutcome",
    "UIController",
]
