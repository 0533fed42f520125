from chat_core.providers.registry import FALLBACK_MODEL, MODEL_REGISTRY, get_model_config, parse_model_catalog


def test_registry_lookup():
    assert get_model_config("openai/dall-e-3").supports_json is False
    assert get_model_config("anthropic/claude-3-sonnet").supports_images is True
    assert get_model_config("unknown/model") is MODEL_REGISTRY[FALLBACK_MODEL]


def test_parse_model_catalog_skips_bad_entries():
    catalog = parse_model_catalog(
        {
            "a/b": {"name": "AB", "supportsImages": True, "supportsJson": False, "maxTokens": 100},
            "broken": "nope",
        }
    )
    assert list(catalog) == ["a/b"]
    assert catalog["a/b"].supports_images
    assert catalog["a/b"].max_tokens == 100
