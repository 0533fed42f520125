from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Protocol

from .models import Message, Mode


SENTINEL_TITLE = "New Chat"
TITLE_MAX_LENGTH = 25

# 本地存储使用的固定键名
CHATS_KEY = "ai_chats"
ACTIVE_CHAT_KEY = "current_chat_id"
API_KEY_KEY = "user_api_key"


@dataclass
class Conversation:
    id: str
    title: str
    created_at: datetime
    messages: List[Message] = field(default_factory=list)
    mode: Optional[Mode] = None

    @property
    def has_sentinel_title(self) -> bool:
        return self.title == SENTINEL_TITLE

    def first_user_message(self) -> Optional[Message]:
        for m in self.messages:
            if m.role == "user":
                return m
        return None


def truncate_text(text: str, max_length: int) -> str:
    return text[:max_length] + "..." if len(text) > max_length else text


class KeyValueStore(Protocol):
    """本地键值存储协议（字符串到字符串）。"""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def delete(self, key: str) -> None:
        ...
