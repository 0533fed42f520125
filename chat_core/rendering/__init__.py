"""消息渲染与打字效果。

- renderer: 纯函数，文本 -> HTML 片段。
- presenter: 逐字揭示回复，支持 CancellationToken 取消。
"""

from .presenter import CancellationToken, PresentResult, TypingPresenter, char_delay
from .renderer import escape_html, render_image, render_markup, render_message

__all__ = [
    "CancellationToken",
    "PresentResult",
    "TypingPresenter",
    "char_delay",
    "escape_html",
    "render_image",
    "render_markup",
    "render_message",
]
