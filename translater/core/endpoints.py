"""Endpoint resolution for the OpenAI-compatible chat API.

Two logical endpoints exist: ``translate`` (text model) and ``vision``
(image model). Each may carry its own key and base URL; the vision
endpoint inherits whatever it does not override from the translate one.
Malformed URLs are accepted as-is; the transport surfaces the failure.
"""

from dataclasses import dataclass

DEFAULT_BASE_URL = "https://open.bigmodel.cn/api/paas/v4"
DEFAULT_TRANSLATE_MODEL = "glm-4.5-flash"
DEFAULT_VISION_MODEL = "glm-4v-flash"
DEFAULT_TIMEOUT = 60.0


def normalize_base_url(value: str | None) -> str:
    """Trim, default when empty, and strip trailing slashes."""
    trimmed = (value or "").strip()
    if not trimmed:
        trimmed = DEFAULT_BASE_URL
    return trimmed.rstrip("/")


def normalize_model(value: str | None, fallback: str) -> str:
    trimmed = (value or "").strip()
    return trimmed or fallback


def normalize_base_url_or_fallback(value: str | None, fallback: str) -> str:
    trimmed = (value or "").strip()
    if not trimmed:
        return fallback
    return trimmed.rstrip("/")


@dataclass(frozen=True)
class EndpointConfig:
    """Resolved (api_key, base_url, model) triple for one logical role."""
    api_key: str
    base_url: str
    model: str

    @property
    def chat_completions_url(self) -> str:
        return self.base_url + "/chat/completions"

    def headers(self) -> dict[str, str]:
        """Request headers; Authorization is omitted for an empty key."""
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers


@dataclass(frozen=True)
class ClientConfig:
    """Raw endpoint settings as supplied by the user, before normalization."""
    api_key: str = ""
    base_url: str = ""
    translate_model: str = ""
    vision_model: str = ""
    vision_api_key: str = ""
    vision_base_url: str = ""
    timeout: float = DEFAULT_TIMEOUT

    def cache_key(self) -> tuple:
        """Tuple of resolved fields; a change means the client must be rebuilt."""
        translate, vision = resolve_endpoints(self)
        return (
            translate.api_key, translate.base_url, translate.model,
            vision.api_key, vision.base_url, vision.model,
            self.timeout,
        )


def resolve_endpoints(config: ClientConfig) -> tuple[EndpointConfig, EndpointConfig]:
    """Resolve the translate and vision endpoints from a raw config.

    Args:
        config: User-supplied endpoint settings.

    Returns:
        Tuple of (translate, vision) endpoint configs.
    """
    base_url = normalize_base_url(config.base_url)

    translate_key = (config.api_key or "").strip()
    vision_key = (config.vision_api_key or "").strip() or translate_key

    translate = EndpointConfig(
        api_key=translate_key,
        base_url=base_url,
        model=normalize_model(config.translate_model, DEFAULT_TRANSLATE_MODEL),
    )
    vision = EndpointConfig(
        api_key=vision_key,
        base_url=normalize_base_url_or_fallback(config.vision_base_url, base_url),
        model=normalize_model(config.vision_model, DEFAULT_VISION_MODEL),
    )
    return translate, vision
