"""
Vision service adapters for template reconstruction.

Provides:
- VisionService base interface (prompt + page image -> text)
- OpenAI-compatible chat completions (OpenAI, DeepSeek, OpenRouter,
  Mistral, Together, Groq)
- Anthropic Messages API
- Google Gemini generateContent
- A text-only service for providers without image support

Services raise VisionServiceError on any transport or payload problem;
callers decide whether the failure is fatal.
"""

import logging
from typing import Optional, Dict, Any

import requests

from .config import RefinementConfig, VISION_PROVIDERS
from .geometry import PageImage

logger = logging.getLogger(__name__)


class VisionServiceError(RuntimeError):
    """Raised when a provider call fails or returns an unusable payload."""


# ============================================================================
# Base Interface
# ============================================================================

class VisionService:
    """
    Minimal capability interface: send an instruction with an image.

    Subclasses declare whether they accept images through
    `supports_vision`; callers must check it before calling `complete`.
    """

    name = "base"
    supports_vision = False

    def complete(self, instruction: str, image: PageImage) -> str:
        raise NotImplementedError


class TextOnlyService(VisionService):
    """Placeholder for providers without image understanding."""

    supports_vision = False

    def __init__(self, provider: str):
        self.name = provider

    def complete(self, instruction: str, image: PageImage) -> str:
        raise VisionServiceError(f"Provider {self.name} does not support document vision")


class _HTTPVisionService(VisionService):
    """Shared request handling for HTTP providers."""

    supports_vision = True

    def __init__(
        self,
        api_key: str,
        model: str,
        timeout_s: float = 60.0,
        max_tokens: int = 4096,
        temperature: Optional[float] = None,
        session: Optional[requests.Session] = None
    ):
        self.api_key = api_key
        self.model = model
        self.timeout_s = timeout_s
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.session = session or requests.Session()

    def _post(self, url: str, headers: Dict[str, str], payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = self.session.post(
                url,
                headers=headers,
                json=payload,
                timeout=self.timeout_s
            )
            response.raise_for_status()
            return response.json()
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else "?"
            raise VisionServiceError(f"{self.name} API error: {status}") from e
        except requests.exceptions.RequestException as e:
            raise VisionServiceError(f"{self.name} request failed: {e}") from e
        except ValueError as e:
            raise VisionServiceError(f"{self.name} returned invalid JSON: {e}") from e


# ============================================================================
# Provider Implementations
# ============================================================================

OPENAI_COMPATIBLE_URLS = {
    "openai": "https://api.openai.com/v1/chat/completions",
    "deepseek": "https://api.deepseek.com/chat/completions",
    "mistral": "https://api.mistral.ai/v1/chat/completions",
    "together": "https://api.together.xyz/v1/chat/completions",
    "groq": "https://api.groq.com/openai/v1/chat/completions",
    "openrouter": "https://openrouter.ai/api/v1/chat/completions",
}


class OpenAICompatibleService(_HTTPVisionService):
    """Chat-completions endpoint with an `image_url` content part."""

    def __init__(self, provider: str, api_key: str, model: str, base_url: Optional[str] = None, **kwargs):
        super().__init__(api_key, model, **kwargs)
        self.name = provider
        self.url = base_url or OPENAI_COMPATIBLE_URLS.get(provider, OPENAI_COMPATIBLE_URLS["openai"])
        self.supports_vision = provider in VISION_PROVIDERS or base_url is not None

    def complete(self, instruction: str, image: PageImage) -> str:
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }
        if self.name == "openrouter":
            headers["X-Title"] = "template-recon"

        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": instruction},
                        {"type": "image_url", "image_url": {"url": image.data_url}},
                    ],
                }
            ],
            "max_tokens": self.max_tokens,
        }
        if self.temperature is not None:
            payload["temperature"] = self.temperature

        data = self._post(self.url, headers, payload)
        try:
            return data["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError) as e:
            raise VisionServiceError(f"{self.name} response missing message content") from e


class AnthropicService(_HTTPVisionService):
    """Anthropic Messages API with a base64 image block."""

    name = "anthropic"
    API_URL = "https://api.anthropic.com/v1/messages"
    API_VERSION = "2023-06-01"

    def complete(self, instruction: str, image: PageImage) -> str:
        headers = {
            "Content-Type": "application/json",
            "x-api-key": self.api_key,
            "anthropic-version": self.API_VERSION,
        }
        payload: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {
                            "type": "image",
                            "source": {
                                "type": "base64",
                                "media_type": image.mime_type,
                                "data": image.data,
                            },
                        },
                        {"type": "text", "text": instruction},
                    ],
                }
            ],
        }
        if self.temperature is not None:
            payload["temperature"] = self.temperature

        data = self._post(self.API_URL, headers, payload)
        try:
            return data["content"][0]["text"] or ""
        except (KeyError, IndexError, TypeError) as e:
            raise VisionServiceError("anthropic response missing text content") from e


class GeminiService(_HTTPVisionService):
    """Google Gemini generateContent with inline image data."""

    name = "gemini"
    API_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

    def complete(self, instruction: str, image: PageImage) -> str:
        url = self.API_URL.format(model=self.model)
        headers = {
            "Content-Type": "application/json",
            "x-goog-api-key": self.api_key,
        }
        payload: Dict[str, Any] = {
            "contents": [
                {
                    "parts": [
                        {"text": instruction},
                        {"inline_data": {"mime_type": image.mime_type, "data": image.data}},
                    ]
                }
            ],
            "generationConfig": {"maxOutputTokens": self.max_tokens},
        }
        if self.temperature is not None:
            payload["generationConfig"]["temperature"] = self.temperature

        data = self._post(url, headers, payload)
        try:
            return data["candidates"][0]["content"]["parts"][0]["text"] or ""
        except (KeyError, IndexError, TypeError) as e:
            raise VisionServiceError("gemini response missing text content") from e


# ============================================================================
# Factory
# ============================================================================

def create_service(
    config: RefinementConfig,
    session: Optional[requests.Session] = None
) -> Optional[VisionService]:
    """
    Build the service for the configured provider.

    Returns:
        A VisionService, or None when no API key is configured
    """
    provider = config.provider
    if provider not in OPENAI_COMPATIBLE_URLS and provider not in ("anthropic", "gemini"):
        if config.base_url is None:
            logger.info(f"Provider {provider} has no vision endpoint, refinement disabled")
            return TextOnlyService(provider)

    if not config.api_key:
        logger.info(f"No API key configured for {provider}, refinement disabled")
        return None

    kwargs = dict(
        timeout_s=config.timeout_s,
        max_tokens=config.max_tokens,
        temperature=config.temperature,
        session=session,
    )
    model = config.active_model

    if provider == "anthropic":
        service: VisionService = AnthropicService(config.api_key, model, **kwargs)
    elif provider == "gemini":
        service = GeminiService(config.api_key, model, **kwargs)
    else:
        service = OpenAICompatibleService(
            provider, config.api_key, model, base_url=config.base_url, **kwargs
        )

    logger.debug(f"Using {provider} ({model}), vision={service.supports_vision}")
    return service
