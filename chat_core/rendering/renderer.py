"""消息渲染：把存储的纯文本转换为可直接显示的 HTML 片段。

规则按固定顺序执行，后面的规则不会再匹配前面已经生成的标签：

1. 围栏代码块（```lang ... ```）最先抽出，替换为占位符，代码体做 HTML 转义。
2. 其余文本整体转义后，再处理行内代码、加粗、斜体、删除线。
3. 以 "> " 开头的行包成 blockquote。
4. 以 "- " 开头的行包成 li，相邻的 li 合并进同一个 ul。
5. 剩余换行转换为 <br>。

所有原始文本在插入前都会转义，已转义的实体不会被二次转义。
"""

import re
from typing import Callable, Dict, List, Optional
from uuid import uuid4

from chat_core.domain.conversation import truncate_text
from chat_core.domain.models import Message


_CODE_BLOCK_RE = re.compile(r"```(\w+)?\n([\s\S]*?)```")
_INLINE_CODE_RE = re.compile(r"`([^`\n]+)`")
_BOLD_RE = re.compile(r"\*\*?([^*\n]+)\*?\*")
_ITALIC_RE = re.compile(r"_([^_\n]+)_")
_STRIKE_RE = re.compile(r"~([^~\n]+)~")
_QUOTE_PREFIX = "&gt; "
_LIST_PREFIX = "- "

# 已经是合法实体的 & 不再转义
_BARE_AMP_RE = re.compile(r"&(?!(?:[a-zA-Z][a-zA-Z0-9]*|#\d+|#[xX][0-9a-fA-F]+);)")

SIDEBAR_TITLE_LENGTH = 20


def escape_html(text: str) -> str:
    text = _BARE_AMP_RE.sub("&amp;", text)
    return (
        text.replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
        .replace("'", "&#x27;")
    )


def _code_block_html(language: Optional[str], code: str) -> str:
    lang = language or "text"
    return (
        '<div class="code-block">'
        '<div class="code-header">'
        f'<span class="language-tag">{lang}</span>'
        '<button class="copy-btn" data-action="copy-code">Copy</button>'
        "</div>"
        f"<pre><code>{escape_html(code.strip())}</code></pre>"
        "</div>"
    )


class _Placeholders:
    """用带随机 nonce 的占位符暂存已生成的 HTML，输入文本无法伪造。"""

    def __init__(self, kind: str):
        self._prefix = f"\x00{kind}{uuid4().hex}:"
        self._items: Dict[str, str] = {}

    def hold(self, html: str) -> str:
        key = f"{self._prefix}{len(self._items)}\x00"
        self._items[key] = html
        return key

    def restore(self, text: str) -> str:
        for key, html in self._items.items():
            text = text.replace(key, html)
        return text


def _wrap(pattern: re.Pattern, template: str) -> Callable[[str], str]:
    return lambda text: pattern.sub(template, text)


_EMPHASIS_RULES = (
    _wrap(_BOLD_RE, r'<strong class="bold-text">\1</strong>'),
    _wrap(_ITALIC_RE, r'<em class="italic-text">\1</em>'),
    _wrap(_STRIKE_RE, r'<del class="strike-text">\1</del>'),
)


def _render_lines(text: str) -> str:
    out: List[str] = []
    list_items: List[str] = []

    def flush_list() -> None:
        if list_items:
            out.append('<ul class="styled-list">' + "".join(list_items) + "</ul>")
            list_items.clear()

    for line in text.split("\n"):
        if line.startswith(_LIST_PREFIX):
            list_items.append(f'<li class="list-item">{line[len(_LIST_PREFIX):]}</li>')
            continue
        flush_list()
        if line.startswith(_QUOTE_PREFIX):
            line = f'<blockquote class="quote-block">{line[len(_QUOTE_PREFIX):]}</blockquote>'
        out.append(line)
    flush_list()
    return "<br>".join(out)


def render_markup(content: str) -> str:
    """把消息文本转换为 HTML，纯函数，无副作用。"""

    if not content:
        return ""

    blocks = _Placeholders("B")
    text = _CODE_BLOCK_RE.sub(lambda m: blocks.hold(_code_block_html(m.group(1), m.group(2))), content)

    text = escape_html(text)

    spans = _Placeholders("C")
    text = _INLINE_CODE_RE.sub(lambda m: spans.hold(f'<code class="inline-code">{m.group(1)}</code>'), text)
    for rule in _EMPHASIS_RULES:
        text = rule(text)

    text = _render_lines(text)
    text = spans.restore(text)
    return blocks.restore(text)


def render_image(image_url: str, caption: str) -> str:
    url = escape_html(image_url)
    cap = escape_html(caption)
    return (
        '<div class="image-message">'
        f'<img src="{url}" alt="{cap}" data-preview="{url}">'
        f'<div class="image-caption">{cap}</div>'
        "</div>"
    )


def render_message(message: Message) -> str:
    """渲染一条完整消息（头像 + 内容），图片类型走 render_image。"""

    avatar = "user" if message.role == "user" else "robot"
    if message.is_image:
        default = "Generated Image" if message.type in ("image", "image_generation") else "Edited Image"
        body = render_image(message.content, message.caption or default)
    else:
        body = f'<div class="message-content">{render_markup(message.content)}</div>'
    return (
        f'<div class="message {message.role}">'
        f'<div class="message-avatar" data-icon="{avatar}"></div>'
        f"{body}"
        "</div>"
    )


_FORMAT_WRAPPERS = {
    "bold": ("*", "*"),
    "italic": ("_", "_"),
    "code": ("`", "`"),
    "quote": ("> ", ""),
}


def apply_formatting(text: str, start: int, end: int, kind: str) -> tuple[str, int]:
    """给输入框选中区域套上格式标记，返回新文本与新的光标位置。"""

    if kind not in _FORMAT_WRAPPERS:
        raise ValueError(f"unknown format: {kind!r}")
    left, right = _FORMAT_WRAPPERS[kind]
    formatted = left + text[start:end] + right
    return text[:start] + formatted + text[end:], start + len(formatted)


def format_file_size(size: int) -> str:
    if size <= 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    idx = 0
    value = float(size)
    while value >= 1024 and idx < len(units) - 1:
        value /= 1024
        idx += 1
    return f"{round(value, 2):g} {units[idx]}"


def sidebar_title(title: str) -> str:
    return truncate_text(title, SIDEBAR_TITLE_LENGTH)
