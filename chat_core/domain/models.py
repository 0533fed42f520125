"""统一的消息与结果数据模型。

本模块定义了客户端内部共享的标准数据结构：

- Message: 会话中的一条消息（文本或图片引用），一旦追加即不可变。
- ChatReply / ImageReply: 从代理服务器响应中解析出的统一结果。

ProxyClient 与 RequestOrchestrator 只依赖这些模型，
并负责在服务器 JSON 与这些模型之间做转换。
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Literal, Optional


# 消息角色。system 仅可能出现在旧数据中，发送前会被过滤掉
Role = Literal["system", "user", "assistant"]

# 消息类型，image* 类型的 content 是图片地址
MessageType = Literal["text", "image", "image_generation", "image_edit"]

# 会话模式，对应输入区的三个标签页
Mode = Literal["chat", "image", "edit"]

IMAGE_TYPES = frozenset({"image", "image_generation", "image_edit"})


@dataclass(frozen=True)
class Message:
    """一条会话消息。

    - role: user / assistant。
    - content: 纯文本，或 image* 类型时为图片 URL。
    - type: 消息类型，决定渲染方式。
    - caption: 图片说明，仅 image* 类型保留。
    """

    role: Role
    content: str
    type: MessageType = "text"
    caption: Optional[str] = None

    def __post_init__(self) -> None:
        if self.type not in IMAGE_TYPES and self.caption is not None:
            object.__setattr__(self, "caption", None)

    @property
    def is_image(self) -> bool:
        # 用户侧的 image_generation / image_edit 消息只是提示词回显，按文本显示
        return self.role == "assistant" and self.type in IMAGE_TYPES

    def to_payload(self) -> Dict[str, str]:
        """转换为发送给 /api/chat 的 {role, content}。"""

        return {"role": self.role, "content": self.content}


@dataclass
class ChatUsage:
    """服务器透传的 token 统计信息。"""

    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


@dataclass
class ChatReply:
    """一次对话调用的结果。

    - content: 助手回复全文。
    - model: 服务器实际使用的模型。
    - json: JSON 模式下服务器解析出的对象（解析失败为 None）。
    """

    content: str
    model: Optional[str] = None
    usage: Optional[ChatUsage] = None
    json: Optional[Any] = None
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ImageReply:
    """图片生成 / 编辑结果。"""

    image_url: str
    revised_prompt: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)
