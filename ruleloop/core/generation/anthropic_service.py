"""
Anthropic Generation Service

Implements GenerationService for Anthropic Claude models.
Supports: claude-sonnet-4-5, claude-haiku-4-5, claude-opus-4-5
"""

import os
import logging
from typing import Dict, Optional

from anthropic import AsyncAnthropic

from ..circuit_breaker import CircuitBreaker
from ..exceptions import ConfigurationError
from .generation_service import Completion, GenerationService

logger = logging.getLogger(__name__)


class AnthropicGenerationService(GenerationService):
    """
    Anthropic provider implementation.

    Claude has no JSON mode, so the schema goes into the system prompt and
    the answer is parsed leniently (code fences are stripped).
    """

    # Pricing per 1M tokens
    MODELS = {
        "claude-sonnet-4-5": {
            "api_name": "claude-sonnet-4-5-20250929",
            "input_price": 3.00,
            "output_price": 15.00,
        },
        "claude-haiku-4-5": {
            "api_name": "claude-haiku-4-5-20251001",
            "input_price": 1.00,
            "output_price": 5.00,
        },
        "claude-opus-4-5": {
            "api_name": "claude-opus-4-5-20251101",
            "input_price": 5.00,
            "output_price": 25.00,
        },
    }

    def __init__(
        self,
        model_name: str = "claude-haiku-4-5",
        api_key: Optional[str] = None,
        client: Optional[AsyncAnthropic] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
        timeout: float = 30.0,
        max_tokens: int = 1000
    ):
        """
        Initialize Anthropic generation service.

        Args:
            model_name: Model to use (e.g., "claude-haiku-4-5")
            api_key: Optional Anthropic API key (or use ANTHROPIC_API_KEY env var)
            client: Pre-built AsyncAnthropic client (tests inject a mock here)
            circuit_breaker: Breaker guarding calls (default: process-wide generation breaker)
            timeout: Per-request timeout in seconds
            max_tokens: Completion token cap

        Raises:
            ValueError: If model is not supported
            ConfigurationError: If no client and no API key are available
        """
        if model_name not in self.MODELS:
            raise ValueError(
                f"Unsupported Anthropic model: '{model_name}'. "
                f"Supported models: {list(self.MODELS.keys())}"
            )
        super().__init__(circuit_breaker=circuit_breaker)

        self.model_name = model_name
        self.model_config = self.MODELS[model_name]
        self.timeout = timeout
        self.max_tokens = max_tokens

        if client is None:
            api_key = api_key or os.getenv("ANTHROPIC_API_KEY")
            if not api_key:
                raise ConfigurationError(
                    "ANTHROPIC_API_KEY environment variable is required. "
                    "Get API key at: https://console.anthropic.com/settings/keys",
                    setting="ANTHROPIC_API_KEY"
                )
            client = AsyncAnthropic(api_key=api_key)
        self.client = client

        logger.info(f"AnthropicGenerationService initialized with model: {model_name}")

    async def _complete(self, system_prompt: str, prompt: str) -> Completion:
        response = await self.client.messages.create(
            model=self.model_config["api_name"],
            max_tokens=self.max_tokens,
            system=system_prompt,
            messages=[{"role": "user", "content": prompt}],
            temperature=0.2,
            timeout=self.timeout,
        )

        text = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )
        usage = response.usage
        return Completion(
            text=text,
            input_tokens=usage.input_tokens if usage else 0,
            output_tokens=usage.output_tokens if usage else 0,
        )

    async def aclose(self) -> None:
        await self.client.close()

    def get_pricing(self) -> Dict[str, float]:
        return {
            "input": self.model_config["input_price"],
            "output": self.model_config["output_price"],
        }

    def get_model_name(self) -> str:
        return self.model_name
