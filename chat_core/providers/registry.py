"""代理服务器支持的模型目录。

与服务器端 MODEL_CONFIG 保持一致。客户端用它来：

- 填充模型下拉框；
- 判断 JSON 输出开关是否对当前模型生效（supports_json）；
- 判断模型能否处理图片（supports_images）。

服务器可以通过 /api/models 返回更新后的目录，见 ProxyClient.list_models()。"""

from dataclasses import dataclass
from typing import Any, Dict, Mapping


@dataclass
class ModelConfig:
    """单个模型的能力配置。"""

    model_id: str
    name: str
    supports_images: bool
    supports_json: bool
    max_tokens: int


MODEL_REGISTRY: Mapping[str, ModelConfig] = {
    "deepseek/deepseek-chat": ModelConfig(
        model_id="deepseek/deepseek-chat",
        name="DeepSeek Chat",
        supports_images=False,
        supports_json=True,
        max_tokens=4096,
    ),
    "deepseek/deepseek-coder": ModelConfig(
        model_id="deepseek/deepseek-coder",
        name="DeepSeek Coder",
        supports_images=False,
        supports_json=True,
        max_tokens=4096,
    ),
    "openai/gpt-4": ModelConfig(
        model_id="openai/gpt-4",
        name="GPT-4",
        supports_images=True,
        supports_json=True,
        max_tokens=8192,
    ),
    "openai/dall-e-3": ModelConfig(
        model_id="openai/dall-e-3",
        name="DALL-E 3",
        supports_images=True,
        supports_json=False,
        max_tokens=1000,
    ),
    "anthropic/claude-3-sonnet": ModelConfig(
        model_id="anthropic/claude-3-sonnet",
        name="Claude 3 Sonnet",
        supports_images=True,
        supports_json=True,
        max_tokens=4096,
    ),
}

# 未知模型按服务器的默认模型处理
FALLBACK_MODEL = "deepseek/deepseek-chat"


def get_model_config(model_id: str) -> ModelConfig:
    """根据 ID 获取 ModelConfig，未知 ID 回退到默认模型。"""

    return MODEL_REGISTRY.get(model_id) or MODEL_REGISTRY[FALLBACK_MODEL]


def parse_model_catalog(payload: Mapping[str, Any]) -> Dict[str, ModelConfig]:
    """把 /api/models 返回的 {id: {name, supportsImages, ...}} 转成 ModelConfig。"""

    catalog: Dict[str, ModelConfig] = {}
    for model_id, raw in payload.items():
        if not isinstance(raw, Mapping):
            continue
        catalog[model_id] = ModelConfig(
            model_id=model_id,
            name=str(raw.get("name") or model_id),
            supports_images=bool(raw.get("supportsImages", False)),
            supports_json=bool(raw.get("supportsJson", False)),
            max_tokens=int(raw.get("maxTokens") or 0),
        )
    return catalog
