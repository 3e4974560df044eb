"""
Generation Service Abstract Interface

Defines the contract for all LLM providers (OpenAI, Anthropic, etc.):
prompt in, object conforming to a declared JSON schema out.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Any, Optional
import logging
import time

from ..circuit_breaker import CircuitBreaker, generation_circuit_breaker
from ..exceptions import GenerationError, GenerationUnavailableError
from .schema import describe_schema, extract_json_object, validate_output

logger = logging.getLogger(__name__)


@dataclass
class Completion:
    """Raw provider answer before JSON parsing"""
    text: str
    input_tokens: int = 0
    output_tokens: int = 0


class GenerationService(ABC):
    """
    Abstract interface for LLM providers.

    Subclasses implement:
    1. _complete() - Send system + user prompt, return raw text and token usage
    2. get_pricing() - Return pricing information for cost tracking
    3. get_model_name() - Return the model identifier

    invoke() wraps _complete() with the circuit breaker, JSON parsing and
    schema validation, so every provider honours the same contract:
    the returned dict conforms to output_schema, otherwise an error is raised.
    """

    def __init__(self, circuit_breaker: Optional[CircuitBreaker] = None):
        self.circuit_breaker = circuit_breaker or generation_circuit_breaker
        self.last_usage: Optional[Dict[str, Any]] = None

    async def invoke(self, prompt: str, output_schema: Dict[str, Any]) -> Dict[str, Any]:
        """
        Run the prompt and return an object conforming to output_schema.

        Args:
            prompt: User prompt
            output_schema: JSON schema the answer must satisfy

        Returns:
            Parsed and validated JSON object

        Raises:
            GenerationUnavailableError: Circuit breaker is open
            GenerationError: Provider call failed
            GenerationSchemaError: Answer is not JSON or violates the schema
        """
        model = self.get_model_name()

        if self.circuit_breaker.is_open():
            raise GenerationUnavailableError(
                f"Generation circuit breaker is OPEN, skipping call to {model}", model=model
            )
        self.circuit_breaker.record_attempt()

        start_time = time.monotonic()
        try:
            completion = await self._complete(self._build_system_prompt(output_schema), prompt)
        except GenerationError:
            self.circuit_breaker.record_failure()
            raise
        except Exception as e:
            self.circuit_breaker.record_failure()
            raise GenerationError(f"{model} call failed: {e}", model=model) from e
        except BaseException:
            # Cancelled mid-call: no verdict on the provider
            self.circuit_breaker.release_attempt()
            raise

        # The provider answered; schema problems are not an availability issue
        self.circuit_breaker.record_success()
        duration_ms = (time.monotonic() - start_time) * 1000

        self.last_usage = {
            "model": model,
            "tokens": {"input": completion.input_tokens, "output": completion.output_tokens},
            "cost_usd": self.estimate_cost(completion.input_tokens, completion.output_tokens),
            "duration_ms": round(duration_ms, 2),
        }
        logger.info(
            f"Generation with {model} took {duration_ms:.0f}ms",
            extra=self.last_usage
        )

        payload = extract_json_object(completion.text, model=model)
        return validate_output(payload, output_schema, model=model)

    @abstractmethod
    async def _complete(self, system_prompt: str, prompt: str) -> Completion:
        """
        Send one request to the provider.

        Raises:
            Any provider exception; invoke() converts it to GenerationError
        """
        pass

    @abstractmethod
    def get_pricing(self) -> Dict[str, float]:
        """
        Get pricing information for this model, per 1M tokens.

        Returns:
            {"input": 0.15, "output": 0.60}
        """
        pass

    @abstractmethod
    def get_model_name(self) -> str:
        """Canonical model name (e.g., "gpt-4o-mini", "claude-haiku-4-5")."""
        pass

    async def aclose(self) -> None:
        """Release the provider client (HTTP connection pool). No-op by default."""
        return None

    def _build_system_prompt(self, output_schema: Dict[str, Any]) -> str:
        return (
            "You are an automation assistant for a business-operations platform. "
            "Respond ONLY with a single JSON object, no prose and no code fences. "
            "The object must conform to this JSON schema:\n"
            f"{describe_schema(output_schema)}"
        )

    def estimate_cost(self, input_tokens: int, output_tokens: int) -> float:
        """
        Estimate cost for token usage.

        Example:
            >>> service = OpenAIGenerationService("gpt-4o-mini", client=client)
            >>> service.estimate_cost(1000, 500)
            0.00045  # $0.15/1M * 1000 + $0.60/1M * 500
        """
        pricing = self.get_pricing()
        input_cost = (input_tokens / 1_000_000) * pricing["input"]
        output_cost = (output_tokens / 1_000_000) * pricing["output"]
        return round(input_cost + output_cost, 6)
