"""逐字显示助手回复（模拟打字）。

远端调用是非流式的：拿到完整文本后在本地逐字揭示。每揭示一个字符前
检查 CancellationToken，被取消时立即停止动画并一次性显示全文。
无论是否取消，返回给调用方用于存储的都是完整原文，动画只是显示效果。
"""

import threading
import time
from dataclasses import dataclass
from typing import Callable, Iterator, Optional, Protocol, Tuple

from .renderer import render_markup


DEFAULT_DELAY = 0.010
NEWLINE_DELAY = 0.050
SENTENCE_END_DELAY = 0.100
_SENTENCE_END = frozenset(".!?")


def char_delay(ch: str) -> float:
    """揭示 ch 之后等待的秒数。"""

    if ch in _SENTENCE_END:
        return SENTENCE_END_DELAY
    if ch == "\n":
        return NEWLINE_DELAY
    return DEFAULT_DELAY


class CancellationToken:
    """一次生成对应一个 token，取消只影响持有它的 presenter。"""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class DisplaySurface(Protocol):
    """显示目标：update 接收动画中间帧，commit 接收最终全文。"""

    def update(self, markup: str) -> None:
        ...

    def commit(self, markup: str) -> None:
        ...


@dataclass
class PresentResult:
    full_text: str
    revealed: str
    cancelled: bool

    @property
    def completed(self) -> bool:
        return not self.cancelled


def iter_frames(text: str, token: CancellationToken) -> Iterator[Tuple[str, float]]:
    """逐个产出 (已揭示前缀, 之后的等待秒数)，token 取消后停止。"""

    revealed = []
    for ch in text:
        if token.cancelled:
            return
        revealed.append(ch)
        yield "".join(revealed), char_delay(ch)


class TypingPresenter:
    def __init__(
        self,
        sleep: Callable[[float], None] = time.sleep,
        render: Callable[[str], str] = render_markup,
        enabled: bool = True,
    ):
        self._sleep = sleep
        self._render = render
        self._enabled = enabled

    def present(
        self,
        text: str,
        surface: DisplaySurface,
        token: Optional[CancellationToken] = None,
    ) -> PresentResult:
        token = token or CancellationToken()
        revealed = ""
        if self._enabled:
            for revealed, delay in iter_frames(text, token):
                surface.update(self._render(revealed))
                self._sleep(delay)
        else:
            revealed = text
        cancelled = revealed != text
        surface.commit(self._render(text))
        return PresentResult(full_text=text, revealed=revealed, cancelled=cancelled)
