"""界面控制器：与具体 GUI 工具包无关的界面状态。

负责输入模式（chat/image/edit）、JSON 开关、模型选择、待编辑图片、
弹窗可见性与状态栏文案；具体的 tkinter 绑定见 chat_core.gui.chat_app。
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Literal, Optional

from chat_core.config.settings import settings
from chat_core.domain.exceptions import BusinessError, ValidationError
from chat_core.domain.models import IMAGE_TYPES, Mode
from chat_core.infrastructure.logging.logger import log_event
from chat_core.rendering.presenter import DisplaySurface
from chat_core.rendering.renderer import sidebar_title
from chat_core.session.session import ChatSession, SendOutcome


ModalName = Literal["api_key", "image_preview", "files"]
IconKind = Literal["comment", "image", "edit"]

MODES: tuple = ("chat", "image", "edit")


@dataclass
class UploadedImage:
    filename: str
    data: bytes


@dataclass
class SidebarEntry:
    conversation_id: str
    title: str
    icon: IconKind
    active: bool


@dataclass
class ControllerState:
    mode: Mode = "chat"
    json_mode: bool = False
    model: str = ""
    uploaded_image: Optional[UploadedImage] = None
    preview_url: Optional[str] = None
    server_online: Optional[bool] = None
    modals: Dict[str, bool] = field(default_factory=lambda: {"api_key": False, "image_preview": False, "files": False})


class UIController:
    def __init__(self, session: ChatSession, backend=None, cfg=settings):
        self.session = session
        self._backend = backend
        self.state = ControllerState(model=cfg.default_model)

    @property
    def backend(self):
        return self._backend

    def startup(self) -> None:
        self.session.start()
        if not self.session.credentials.configured:
            self.open_modal("api_key")

    # ---- 模式与选项 ----

    def set_mode(self, mode: str) -> None:
        if mode not in MODES:
            raise ValidationError(code="UNKNOWN_MODE", message=f"Unknown mode: {mode}")
        self.state.mode = mode  # type: ignore[assignment]

    def toggle_json_mode(self) -> bool:
        self.state.json_mode = not self.state.json_mode
        return self.state.json_mode

    def set_model(self, model: str) -> None:
        self.state.model = model
        log_event(logging.INFO, "Model changed", model=model)

    def attach_image(self, filename: str, data: bytes) -> None:
        self.state.uploaded_image = UploadedImage(filename=filename, data=data)

    def clear_image(self) -> None:
        self.state.uploaded_image = None

    # ---- 弹窗 ----

    def open_modal(self, name: ModalName) -> None:
        self.state.modals[name] = True

    def close_modal(self, name: ModalName) -> None:
        self.state.modals[name] = False
        if name == "image_preview":
            self.state.preview_url = None

    def is_open(self, name: ModalName) -> bool:
        return self.state.modals.get(name, False)

    def preview_image(self, url: str) -> None:
        self.state.preview_url = url
        self.open_modal("image_preview")

    # ---- 状态栏与侧边栏 ----

    def refresh_server_status(self) -> None:
        if self._backend is None:
            return
        try:
            self._backend.health()
            self.state.server_online = True
        except BusinessError as e:
            log_event(logging.WARNING, "Health check failed", error=e.message)
            self.state.server_online = False

    def status_text(self) -> str:
        if self.state.server_online is False:
            return "Server Offline"
        if self.session.credentials.configured:
            return "Ready - API Key Configured"
        return "API Key Required"

    def sidebar_entries(self) -> List[SidebarEntry]:
        active_id = self.session.store.active_id
        entries = []
        for conv in self.session.conversations():
            types = {m.type for m in conv.messages}
            icon: IconKind = "comment"
            if types & (IMAGE_TYPES - {"image_edit"}):
                icon = "image"
            elif "image_edit" in types:
                icon = "edit"
            entries.append(
                SidebarEntry(
                    conversation_id=conv.id,
                    title=sidebar_title(conv.title),
                    icon=icon,
                    active=conv.id == active_id,
                )
            )
        return entries

    # ---- 动作 ----

    def new_conversation(self) -> str:
        return self.session.new_conversation(self.state.mode)

    def submit(self, text: str, surface: Optional[DisplaySurface] = None) -> SendOutcome:
        """按当前模式分发：chat 发送消息，image 生成图片，edit 编辑已上传的图片。"""

        try:
            if self.state.mode == "image":
                outcome = self.session.generate_image(text)
            elif self.state.mode == "edit":
                image = self.state.uploaded_image
                if image is None:
                    raise ValidationError(code="MISSING_IMAGE", message="Please upload an image to edit")
                outcome = self.session.edit_image(image.data, image.filename, text)
            else:
                outcome = self.session.send_message(
                    text,
                    model=self.state.model,
                    json_mode=self.state.json_mode,
                    surface=surface,
                )
        except ValidationError as e:
            return SendOutcome(status="ignored", message=e.message)
        if outcome.status == "needs_credential":
            self.open_modal("api_key")
        return outcome

    def save_api_key(self, api_key: str) -> str:
        """校验并保存 API Key，返回给用户的提示文案。"""

        try:
            self.session.save_api_key(api_key)
        except BusinessError as e:
            return e.message
        self.close_modal("api_key")
        return "API key validated and saved!"
