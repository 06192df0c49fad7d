"""Model catalog and provider adapter factory."""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import StrEnum

import httpx

from cmsai.clients.anthropic import AnthropicAdapter
from cmsai.clients.base import ProviderAdapter, ProviderConfig, ProviderRateLimiter
from cmsai.clients.gemini import GeminiAdapter
from cmsai.clients.openai import OpenAICompatibleAdapter
from cmsai.config import ConfigurationError, Settings
from cmsai.models.llm import ToolDescriptor
from cmsai.utils.logging import get_logger

logger = get_logger(__name__)


class ProviderFamily(StrEnum):
    ANTHROPIC = "anthropic"
    OPENAI = "openai"
    OLLAMA = "ollama"
    GEMINI = "gemini"


@dataclass(frozen=True)
class ModelSpec:
    """One selectable model."""

    key: str
    label: str
    family: ProviderFamily
    api_model: str
    supports_images: bool = False


class ModelCatalog:
    """Registry of selectable models, keyed by the name the user picks."""

    def __init__(self, specs: Iterable[ModelSpec] = ()):
        self._specs: dict[str, ModelSpec] = {}
        for spec in specs:
            self.register(spec)

    def register(self, spec: ModelSpec) -> None:
        self._specs[spec.key] = spec

    def get(self, key: str) -> ModelSpec:
        try:
            return self._specs[key]
        except KeyError:
            raise ConfigurationError(
                f"Unknown model '{key}'. Available models: {', '.join(self.keys())}"
            ) from None

    def keys(self) -> list[str]:
        return list(self._specs)

    def __contains__(self, key: str) -> bool:
        return key in self._specs

    @classmethod
    def default(cls, settings: Settings | None = None) -> "ModelCatalog":
        anthropic_model = settings.anthropic_model if settings else "claude-3-haiku-20240307"
        return cls(
            [
                ModelSpec("claude3", "Claude 3", ProviderFamily.ANTHROPIC, anthropic_model, supports_images=True),
                ModelSpec("openai", "GPT-4o", ProviderFamily.OPENAI, "gpt-4o", supports_images=True),
                ModelSpec("gpt-3.5-turbo-0125", "GPT-3.5 Turbo", ProviderFamily.OPENAI, "gpt-3.5-turbo-0125"),
                ModelSpec("gemini", "Gemini 1.5 Pro", ProviderFamily.GEMINI, "gemini-1.5-pro-latest"),
                ModelSpec("llama3", "Llama 3 (Ollama)", ProviderFamily.OLLAMA, "llama3"),
            ]
        )


class ProviderFactory:
    """Builds the adapter for a catalog key from application settings."""

    def __init__(self, settings: Settings, catalog: ModelCatalog | None = None):
        self.settings = settings
        self.catalog = catalog or ModelCatalog.default(settings)

    def config_for(self, spec: ModelSpec) -> ProviderConfig:
        """Resolve credentials and endpoint for a model.

        Raises:
            ConfigurationError: If the family needs a key that is not set
        """
        settings = self.settings
        match spec.family:
            case ProviderFamily.ANTHROPIC:
                api_key, base_url, requires_key = settings.anthropic_api_key, "", True
                key_name = "ANTHROPIC_API_KEY"
            case ProviderFamily.OPENAI:
                api_key, base_url, requires_key = settings.openai_api_key, settings.openai_base_url, True
                key_name = "OPENAI_API_KEY"
            case ProviderFamily.GEMINI:
                api_key, base_url, requires_key = settings.gemini_api_key, settings.gemini_base_url, True
                key_name = "GEMINI_API_KEY"
            case ProviderFamily.OLLAMA:
                api_key, base_url, requires_key = "", settings.ollama_base_url, False
                key_name = ""

        if requires_key and not api_key:
            raise ConfigurationError(f"{key_name} is not set; it is required for model '{spec.key}'")

        return ProviderConfig(
            model=spec.api_model,
            api_key=api_key,
            base_url=base_url,
            max_tokens=settings.max_tokens,
            temperature=settings.temperature,
            timeout=settings.request_timeout,
            requires_api_key=requires_key,
        )

    def rate_limiter(self) -> ProviderRateLimiter | None:
        if self.settings.requests_per_minute <= 0 and self.settings.tokens_per_minute <= 0:
            return None
        return ProviderRateLimiter(
            requests_per_minute=self.settings.requests_per_minute,
            tokens_per_minute=self.settings.tokens_per_minute,
        )

    def build(
        self,
        key: str,
        tools: Sequence[ToolDescriptor] = (),
        http_client: httpx.Client | None = None,
    ) -> ProviderAdapter:
        """Create the adapter for ``key`` with the given tools declared."""
        spec = self.catalog.get(key)
        config = self.config_for(spec)
        limiter = self.rate_limiter()
        logger.info(f"Using model {spec.key} ({spec.family}: {spec.api_model})")

        if spec.family == ProviderFamily.ANTHROPIC:
            return AnthropicAdapter(config, tools, limiter, http_client=http_client)
        if spec.family == ProviderFamily.GEMINI:
            return GeminiAdapter(config, tools, limiter, http_client=http_client)
        return OpenAICompatibleAdapter(config, tools, limiter, http_client=http_client)
