"""
OpenAI Generation Service

Implements GenerationService for OpenAI chat models using JSON mode.
Supports: gpt-4o-mini, gpt-4o, gpt-4.1, gpt-4.1-mini, gpt-4.1-nano, gpt-5-mini, gpt-5
"""

import os
import logging
from typing import Dict, Optional

from openai import AsyncOpenAI

from ..circuit_breaker import CircuitBreaker
from ..exceptions import ConfigurationError
from .generation_service import Completion, GenerationService

logger = logging.getLogger(__name__)


class OpenAIGenerationService(GenerationService):
    """OpenAI provider implementation."""

    # Model configurations
    MODELS = {
        "gpt-4o-mini": {
            "api_name": "gpt-4o-mini",
            "input_price": 0.15,  # $ per 1M tokens
            "output_price": 0.60,
        },
        "gpt-4o": {
            "api_name": "gpt-4o",
            "input_price": 2.50,
            "output_price": 10.00,
        },
        "gpt-4.1": {
            "api_name": "gpt-4.1",
            "input_price": 2.00,
            "output_price": 8.00,
        },
        "gpt-4.1-mini": {
            "api_name": "gpt-4.1-mini",
            "input_price": 0.40,
            "output_price": 1.60,
        },
        "gpt-4.1-nano": {
            "api_name": "gpt-4.1-nano",
            "input_price": 0.10,
            "output_price": 0.40,
        },
        "gpt-5-mini": {
            "api_name": "gpt-5-mini",
            "input_price": 0.25,
            "output_price": 2.00,
        },
        "gpt-5": {
            "api_name": "gpt-5",
            "input_price": 1.25,
            "output_price": 10.00,
        }
    }

    def __init__(
        self,
        model_name: str = "gpt-4o-mini",
        api_key: Optional[str] = None,
        client: Optional[AsyncOpenAI] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
        timeout: float = 30.0,
        max_tokens: int = 1000
    ):
        """
        Initialize OpenAI generation service.

        Args:
            model_name: Model to use (e.g., "gpt-4o-mini")
            api_key: Optional OpenAI API key (or use OPENAI_API_KEY env var)
            client: Pre-built AsyncOpenAI client (tests inject a mock here)
            circuit_breaker: Breaker guarding calls (default: process-wide generation breaker)
            timeout: Per-request timeout in seconds
            max_tokens: Completion token cap

        Raises:
            ValueError: If model is not supported
            ConfigurationError: If no client and no API key are available
        """
        if model_name not in self.MODELS:
            raise ValueError(
                f"Unsupported OpenAI model: '{model_name}'. "
                f"Supported models: {list(self.MODELS.keys())}"
            )
        super().__init__(circuit_breaker=circuit_breaker)

        self.model_name = model_name
        self.model_config = self.MODELS[model_name]
        self.timeout = timeout
        self.max_tokens = max_tokens

        if client is None:
            api_key = api_key or os.getenv("OPENAI_API_KEY")
            if not api_key:
                raise ConfigurationError(
                    "OPENAI_API_KEY environment variable is required. "
                    "Get API key at: https://platform.openai.com/api-keys",
                    setting="OPENAI_API_KEY"
                )
            client = AsyncOpenAI(api_key=api_key)
        self.client = client

        logger.info(f"OpenAIGenerationService initialized with model: {model_name}")

    async def _complete(self, system_prompt: str, prompt: str) -> Completion:
        api_params = {
            "model": self.model_config["api_name"],
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": prompt},
            ],
            "response_format": {"type": "json_object"},
            "timeout": self.timeout,
        }

        # GPT-5 uses max_completion_tokens and only supports the default temperature
        if self.model_name.startswith("gpt-5"):
            api_params["max_completion_tokens"] = self.max_tokens
        else:
            api_params["max_tokens"] = self.max_tokens
            api_params["temperature"] = 0.2

        response = await self.client.chat.completions.create(**api_params)

        usage = response.usage
        return Completion(
            text=response.choices[0].message.content or "",
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
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
