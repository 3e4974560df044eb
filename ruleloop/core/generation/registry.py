"""
Generation Registry - Factory for Generation Services

Maps model names and user-friendly aliases to service classes and caches
the instances so the whole process shares one client per model.
"""

import logging
from typing import Dict, Type, Optional

from .generation_service import GenerationService
from .openai_service import OpenAIGenerationService
from .anthropic_service import AnthropicGenerationService

logger = logging.getLogger(__name__)


class GenerationRegistry:
    """
    Factory for creating generation service instances.

    Example:
        >>> service = GenerationRegistry.get_service("mini")
        >>> service.get_model_name()
        "gpt-4o-mini"
    """

    # Registry: model_name → (Service class, internal model name)
    _REGISTRY: Dict[str, tuple[Type[GenerationService], str]] = {
        # OpenAI models
        "gpt-4o-mini": (OpenAIGenerationService, "gpt-4o-mini"),
        "gpt-4o": (OpenAIGenerationService, "gpt-4o"),
        "gpt-4.1": (OpenAIGenerationService, "gpt-4.1"),
        "gpt-4.1-mini": (OpenAIGenerationService, "gpt-4.1-mini"),
        "gpt-4.1-nano": (OpenAIGenerationService, "gpt-4.1-nano"),
        "gpt-5-mini": (OpenAIGenerationService, "gpt-5-mini"),
        "gpt-5": (OpenAIGenerationService, "gpt-5"),

        # Anthropic models
        "claude-sonnet-4-5": (AnthropicGenerationService, "claude-sonnet-4-5"),
        "claude-haiku-4-5": (AnthropicGenerationService, "claude-haiku-4-5"),
        "claude-opus-4-5": (AnthropicGenerationService, "claude-opus-4-5"),

        # Aliases
        "mini": (OpenAIGenerationService, "gpt-4o-mini"),
        "sonnet": (AnthropicGenerationService, "claude-sonnet-4-5"),
        "haiku": (AnthropicGenerationService, "claude-haiku-4-5"),
        "opus": (AnthropicGenerationService, "claude-opus-4-5"),
    }

    _CACHE: Dict[str, GenerationService] = {}

    @classmethod
    def get_service(cls, model_name: str, api_key: Optional[str] = None, cache: bool = True) -> GenerationService:
        """
        Get service instance for a model, creating it on first use.

        Args:
            model_name: Model name or alias (e.g., "gpt-4o-mini", "haiku")
            api_key: Optional API key (or use the provider's environment variable)
            cache: Reuse the process-wide instance. Pass False when the caller
                runs each pass in its own event loop (Celery tasks)

        Raises:
            ValueError: If model name is not registered
        """
        if not model_name:
            raise ValueError("Model name cannot be empty")

        cache_key = f"{model_name}:{api_key or 'default'}"
        if cache and cache_key in cls._CACHE:
            logger.debug(f"Using cached generation service for model: {model_name}")
            return cls._CACHE[cache_key]

        if model_name not in cls._REGISTRY:
            raise ValueError(
                f"Unknown model: '{model_name}'. "
                f"Available models: {', '.join(cls.list_models())}"
            )

        service_class, internal_model_name = cls._REGISTRY[model_name]
        logger.info(f"Creating generation service for model: {model_name} → {internal_model_name}")

        service = service_class(internal_model_name, api_key=api_key)
        if cache:
            cls._CACHE[cache_key] = service
        return service

    @classmethod
    def list_models(cls) -> list[str]:
        """List all available models (including aliases)."""
        return sorted(cls._REGISTRY.keys())

    @classmethod
    def is_registered(cls, model_name: str) -> bool:
        return model_name in cls._REGISTRY

    @classmethod
    def clear_cache(cls):
        """Drop cached instances (tests, key rotation)"""
        cls._CACHE.clear()
