"""聊天会话：把存储、凭证、请求编排和打字效果组装在一起。

ChatSession 是显式传递的会话对象（不使用全局单例），GUI 持有一个实例，
所有“发送”类操作都通过它完成。消息追加策略：

- 成功：追加用户消息，逐字显示回复，再追加完整的助手消息。
- 普通失败（网络 / 服务器错误）：追加用户消息和一条助手错误消息，
  让失败出现在会话上下文里。
- 凭证缺失或失效：不追加任何消息，返回 needs_credential 让调用方弹出输入框。
- 已有请求进行中：直接拒绝，不追加任何消息。
"""

import logging
from dataclasses import dataclass
from typing import Iterator, Literal, Optional

from chat_core.config.settings import settings
from chat_core.domain.conversation import Conversation
from chat_core.domain.exceptions import (
    BusinessError,
    CredentialInvalidError,
    CredentialRequiredError,
    GenerationInProgressError,
    ValidationError,
)
from chat_core.domain.models import ChatReply, ImageReply, Message, Mode
from chat_core.infrastructure.logging.logger import log_event
from chat_core.infrastructure.storage.conversation_store import ConversationStore
from chat_core.rendering.presenter import CancellationToken, DisplaySurface, PresentResult, TypingPresenter
from chat_core.session.credentials import CredentialManager
from chat_core.session.orchestrator import RequestOrchestrator


OutcomeStatus = Literal["ok", "error", "needs_credential", "busy", "ignored"]


@dataclass
class SendOutcome:
    """一次发送操作的结果，供 GUI 决定提示方式。"""

    status: OutcomeStatus
    message: Optional[str] = None
    reply: Optional[ChatReply | ImageReply] = None
    presented: Optional[PresentResult] = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"


class NullSurface:
    """不需要显示时使用的空显示目标。"""

    def update(self, markup: str) -> None:
        pass

    def commit(self, markup: str) -> None:
        pass


class ChatSession:
    def __init__(
        self,
        store: ConversationStore,
        credentials: CredentialManager,
        orchestrator: RequestOrchestrator,
        presenter: TypingPresenter,
        cfg=settings,
    ):
        self.store = store
        self.credentials = credentials
        self._orchestrator = orchestrator
        self._presenter = presenter
        self._settings = cfg
        self._token: Optional[CancellationToken] = None

    def start(self) -> None:
        """加载本地会话和缓存的 API Key。"""

        self.store.hydrate()
        self.credentials.load()

    # ---- 状态 ----

    @property
    def generating(self) -> bool:
        return self._orchestrator.in_flight or self._token is not None

    @property
    def active(self) -> Conversation:
        return self.store.active

    def conversations(self) -> Iterator[Conversation]:
        return self.store.list_conversations()

    # ---- 会话管理 ----

    def new_conversation(self, mode: Optional[Mode] = None) -> str:
        return self.store.create(mode)

    def switch_conversation(self, conversation_id: str) -> None:
        self.store.switch_active(conversation_id)

    def clear_active(self) -> None:
        self.store.clear(self.store.active.id)

    def delete_conversation(self, conversation_id: str) -> None:
        self.store.delete(conversation_id)

    def save_api_key(self, api_key: str) -> None:
        self.credentials.validate_and_save(api_key)

    def stop_generation(self) -> None:
        """取消当前生成：请求未返回时跳过之后的打字动画，已在动画中则立即显示全文。"""

        if self._token is not None:
            self._token.cancel()

    # ---- 发送 ----

    def send_message(
        self,
        text: str,
        model: Optional[str] = None,
        json_mode: bool = False,
        surface: Optional[DisplaySurface] = None,
    ) -> SendOutcome:
        text = (text or "").strip()
        if not text:
            return SendOutcome(status="ignored")
        if self._token is not None:
            return SendOutcome(status="busy", message="A request is already in progress")
        conv = self.store.active
        model = model or self._settings.default_model
        # token 在请求发出前创建，等待响应期间按 Stop 也会生效
        self._token = CancellationToken()
        try:
            try:
                reply = self._orchestrator.chat(list(conv.messages), text, model, json_mode)
            except BusinessError as e:
                return self._fail(conv.id, Message(role="user", content=text), "Error", e)
            self.store.append(conv.id, Message(role="user", content=text))
            presented = self._presenter.present(reply.content, surface or NullSurface(), self._token)
        finally:
            self._token = None
        self.store.append(conv.id, Message(role="assistant", content=presented.full_text))
        return SendOutcome(status="ok", reply=reply, presented=presented)

    def generate_image(
        self,
        prompt: str,
        size: Optional[str] = None,
        quality: Optional[str] = None,
    ) -> SendOutcome:
        prompt = (prompt or "").strip()
        if not prompt:
            raise ValidationError(code="EMPTY_PROMPT", message="Please enter an image description")
        conv = self.store.active
        user_msg = Message(role="user", content=f"Generate image: {prompt}", type="image_generation")
        try:
            reply = self._orchestrator.generate_image(
                prompt,
                size or self._settings.image_size,
                quality or self._settings.image_quality,
            )
        except BusinessError as e:
            return self._fail(conv.id, user_msg, "Image generation failed", e)
        self.store.append(conv.id, user_msg)
        self.store.append(conv.id, Message(role="assistant", content=reply.image_url, type="image", caption=prompt))
        return SendOutcome(status="ok", reply=reply)

    def edit_image(self, image: bytes, filename: str, prompt: str) -> SendOutcome:
        prompt = (prompt or "").strip()
        if not image:
            raise ValidationError(code="MISSING_IMAGE", message="Please upload an image to edit")
        if not prompt:
            raise ValidationError(code="EMPTY_PROMPT", message="Please describe how to edit the image")
        conv = self.store.active
        user_msg = Message(role="user", content=f"Edit image: {prompt}", type="image_edit")
        try:
            reply = self._orchestrator.edit_image(image, filename, prompt)
        except BusinessError as e:
            return self._fail(conv.id, user_msg, "Image editing failed", e)
        self.store.append(conv.id, user_msg)
        self.store.append(
            conv.id,
            Message(role="assistant", content=reply.image_url, type="image_edit", caption=f"Edited: {prompt}"),
        )
        return SendOutcome(status="ok", reply=reply)

    def _fail(self, conversation_id: str, user_msg: Message, prefix: str, err: BusinessError) -> SendOutcome:
        if isinstance(err, GenerationInProgressError):
            return SendOutcome(status="busy", message=err.message)
        if isinstance(err, (CredentialRequiredError, CredentialInvalidError)):
            return SendOutcome(status="needs_credential", message=err.message)
        log_event(
            logging.ERROR,
            "Send failed",
            conversation_id=conversation_id,
            code=err.code,
            error=err.message,
        )
        text = f"{prefix}: {err.message}"
        self.store.append(conversation_id, user_msg)
        self.store.append(conversation_id, Message(role="assistant", content=text))
        return SendOutcome(status="error", message=text)
