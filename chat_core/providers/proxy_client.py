"""代理服务器 HTTP 客户端。

所有接口都位于 {server_url}/api/ 下，响应统一为 {success, ..., error?}：

- 非 2xx：抛出 ApiError，message 取响应体的 error 字段，没有则用兜底文案，
  http_status 保留原状态码（401 = 凭证无效，由上层处理）。
- 2xx 但 success=false：抛出 ApiError，message 取 error 字段。
- 响应不是 JSON 对象或缺少必需字段：抛出 ApiError（固定兜底文案）。
- 连接失败 / 超时：抛出 NetworkError。
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from chat_core.config.settings import settings
from chat_core.domain.exceptions import ApiError, NetworkError
from chat_core.domain.models import ChatReply, ChatUsage, ImageReply
from chat_core.providers.registry import ModelConfig, parse_model_catalog


MALFORMED_RESPONSE = "Unexpected response from server"


@dataclass
class RemoteFile:
    """服务器端文件目录中的一项。"""

    filename: str
    path: str
    size: int
    is_image: bool


class ProxyClient:
    """代理服务器客户端实现。"""

    name = "proxy"

    def __init__(self, cfg=settings):
        self._settings = cfg

    # ---- 对话与图片 ----

    def chat(self, payload: Dict[str, Any]) -> ChatReply:
        data = self._request("POST", "/api/chat", fallback="Request failed", json=payload)
        content = data.get("content")
        if not isinstance(content, str):
            raise ApiError(code="MALFORMED_RESPONSE", message=MALFORMED_RESPONSE, http_status=502)
        usage = None
        usage_raw = data.get("usage")
        if isinstance(usage_raw, dict):
            usage = ChatUsage(
                prompt_tokens=usage_raw.get("prompt_tokens", 0),
                completion_tokens=usage_raw.get("completion_tokens", 0),
                total_tokens=usage_raw.get("total_tokens", 0),
            )
        return ChatReply(content=content, model=data.get("model"), usage=usage, json=data.get("json"), raw=data)

    def generate_image(self, payload: Dict[str, Any]) -> ImageReply:
        data = self._request("POST", "/api/generate-image", fallback="Image generation failed", json=payload)
        return self._parse_image(data)

    def edit_image(self, image: bytes, filename: str, prompt: str, api_key: str) -> ImageReply:
        data = self._request(
            "POST",
            "/api/edit-image",
            fallback="Image editing failed",
            data={"prompt": prompt, "apiKey": api_key},
            files={"image": (filename, image)},
        )
        return self._parse_image(data)

    def validate_key(self, api_key: str) -> None:
        self._request("POST", "/api/validate-key", fallback="Invalid API key", json={"apiKey": api_key})

    # ---- 服务器信息 ----

    def health(self) -> Dict[str, Any]:
        return self._request("GET", "/api/health", fallback="Server Offline")

    def list_models(self) -> Dict[str, ModelConfig]:
        data = self._request("GET", "/api/models", fallback="Failed to load models")
        models = data.get("models")
        if not isinstance(models, dict):
            raise ApiError(code="MALFORMED_RESPONSE", message=MALFORMED_RESPONSE, http_status=502)
        return parse_model_catalog(models)

    # ---- 文件目录 ----

    def list_files(self) -> List[RemoteFile]:
        data = self._request("GET", "/api/files", fallback="Failed to load files")
        files = data.get("files") or []
        if not isinstance(files, list):
            raise ApiError(code="MALFORMED_RESPONSE", message=MALFORMED_RESPONSE, http_status=502)
        return [self._parse_file(f) for f in files if isinstance(f, dict)]

    def upload_file(self, content: bytes, filename: str) -> RemoteFile:
        data = self._request("POST", "/api/upload", fallback="Upload failed", files={"file": (filename, content)})
        file_raw = data.get("file")
        if not isinstance(file_raw, dict):
            raise ApiError(code="MALFORMED_RESPONSE", message=MALFORMED_RESPONSE, http_status=502)
        return self._parse_file(file_raw)

    def delete_file(self, filename: str) -> None:
        self._request("DELETE", f"/api/files/{quote(filename)}", fallback="Delete failed")

    # ---- 辅助方法 ----

    def _request(self, method: str, path: str, fallback: str, **kwargs: Any) -> Dict[str, Any]:
        url = f"{self._settings.server_url}{path}"
        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                if method == "GET":
                    resp = client.get(url)
                elif method == "DELETE":
                    resp = client.delete(url)
                else:
                    resp = client.post(url, **kwargs)
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e) or fallback, http_status=503, endpoint=path)

        data = self._decode(resp)
        if resp.status_code >= 400:
            message = self._error_text(data) or f"{fallback}: {resp.reason_phrase}"
            raise ApiError(code="API_ERROR", message=message, http_status=resp.status_code, endpoint=path)
        if data is None:
            raise ApiError(code="MALFORMED_RESPONSE", message=MALFORMED_RESPONSE, http_status=502, endpoint=path)
        if not data.get("success"):
            raise ApiError(
                code="API_ERROR",
                message=self._error_text(data) or fallback,
                http_status=resp.status_code,
                endpoint=path,
            )
        return data

    @staticmethod
    def _decode(resp) -> Optional[Dict[str, Any]]:
        try:
            data = resp.json()
        except ValueError:
            return None
        return data if isinstance(data, dict) else None

    @staticmethod
    def _error_text(data: Optional[Dict[str, Any]]) -> Optional[str]:
        if not data:
            return None
        err = data.get("error")
        return str(err) if err else None

    @staticmethod
    def _parse_image(data: Dict[str, Any]) -> ImageReply:
        url = data.get("imageUrl")
        if not isinstance(url, str) or not url:
            raise ApiError(code="MALFORMED_RESPONSE", message=MALFORMED_RESPONSE, http_status=502)
        return ImageReply(image_url=url, revised_prompt=data.get("revisedPrompt"), raw=data)

    @staticmethod
    def _parse_file(raw: Dict[str, Any]) -> RemoteFile:
        try:
            size = int(raw.get("size") or 0)
        except (TypeError, ValueError):
            raise ApiError(code="MALFORMED_RESPONSE", message=MALFORMED_RESPONSE, http_status=502)
        return RemoteFile(
            filename=str(raw.get("filename") or ""),
            path=str(raw.get("path") or ""),
            size=size,
            is_image=bool(raw.get("isImage", False)),
        )
