import pytest

from chat_core.domain.conversation import API_KEY_KEY
from chat_core.domain.exceptions import ApiError, ValidationError
from chat_core.session.credentials import CredentialManager


def test_load_from_storage(kv, backend):
    kv.set(API_KEY_KEY, "sk-saved")
    cm = CredentialManager(kv, backend)
    assert not cm.configured
    assert cm.load() == "sk-saved"
    assert cm.current == "sk-saved"


def test_validate_and_save(kv, backend):
    cm = CredentialManager(kv, backend)
    cm.validate_and_save("  sk-new  ")
    assert backend.calls == [("validate_key", "sk-new")]
    assert cm.current == "sk-new"
    assert kv.get(API_KEY_KEY) == "sk-new"


def test_rejected_key_is_not_saved(kv, backend):
    kv.set(API_KEY_KEY, "sk-old")
    cm = CredentialManager(kv, backend)
    cm.load()
    backend.error = ApiError(code="API_ERROR", message="Invalid API key", http_status=401)
    with pytest.raises(ApiError):
        cm.validate_and_save("sk-bad")
    assert cm.current == "sk-old"
    assert kv.get(API_KEY_KEY) == "sk-old"


def test_empty_key(kv, backend):
    with pytest.raises(ValidationError) as exc:
        CredentialManager(kv, backend).validate_and_save("   ")
    assert exc.value.message == "Please enter your API key"
    assert backend.calls == []


def test_clear(kv, backend):
    kv.set(API_KEY_KEY, "sk-saved")
    cm = CredentialManager(kv, backend)
    cm.load()
    cm.clear()
    assert not cm.configured
    assert kv.get(API_KEY_KEY) is None
