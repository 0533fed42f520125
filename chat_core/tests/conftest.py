from datetime import datetime, timedelta, timezone

import pytest

from chat_core.domain.conversation import API_KEY_KEY
from chat_core.domain.models import ChatReply, ImageReply
from chat_core.infrastructure.storage.conversation_store import ConversationStore
from chat_core.infrastructure.storage.kv_store import InMemoryKeyValueStore
from chat_core.rendering.presenter import TypingPresenter
from chat_core.session.credentials import CredentialManager
from chat_core.session.orchestrator import RequestOrchestrator
from chat_core.session.session import ChatSession


class SettingsStub:
    server_url = "http://proxy.test"
    http_timeout = 1.0
    default_model = "deepseek/deepseek-chat"
    image_size = "1024x1024"
    image_quality = "standard"
    typing_enabled = True


class FakeBackend:
    """记录所有调用；reply / error 可在测试中替换。"""

    def __init__(self):
        self.calls = []
        self.chat_reply = ChatReply(content="done")
        self.image_reply = ImageReply(image_url="https://img.test/a.png", revised_prompt="a cat")
        self.error = None

    def chat(self, payload):
        self.calls.append(("chat", payload))
        if self.error:
            raise self.error
        return self.chat_reply

    def generate_image(self, payload):
        self.calls.append(("generate_image", payload))
        if self.error:
            raise self.error
        return self.image_reply

    def edit_image(self, image, filename, prompt, api_key):
        self.calls.append(("edit_image", {"image": image, "filename": filename, "prompt": prompt, "apiKey": api_key}))
        if self.error:
            raise self.error
        return self.image_reply

    def validate_key(self, api_key):
        self.calls.append(("validate_key", api_key))
        if self.error:
            raise self.error

    def health(self):
        self.calls.append(("health", None))
        if self.error:
            raise self.error
        return {"success": True}


def make_clock(start=datetime(2024, 1, 1, tzinfo=timezone.utc), step_ms=1):
    state = {"now": start}

    def tick():
        current = state["now"]
        state["now"] = current + timedelta(milliseconds=step_ms)
        return current

    return tick


@pytest.fixture
def kv():
    return InMemoryKeyValueStore()


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def session(kv, backend):
    kv.set(API_KEY_KEY, "sk-test-0123456789abcdef")
    credentials = CredentialManager(kv, backend)
    s = ChatSession(
        store=ConversationStore(kv, clock=make_clock()),
        credentials=credentials,
        orchestrator=RequestOrchestrator(backend, credentials),
        presenter=TypingPresenter(sleep=lambda _: None),
        cfg=SettingsStub(),
    )
    s.start()
    return s
