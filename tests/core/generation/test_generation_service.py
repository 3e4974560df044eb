"""
Unit Tests for GenerationService.invoke()

Tests cover:
- Parsing and validation of the provider answer
- Circuit breaker integration
- Error wrapping
- Usage/cost tracking
"""

import asyncio
import json
from typing import Dict, List

import pytest

from ruleloop.core.circuit_breaker import CircuitBreaker
from ruleloop.core.exceptions import (
    GenerationError,
    GenerationSchemaError,
    GenerationUnavailableError,
)
from ruleloop.core.generation.generation_service import Completion, GenerationService
from ruleloop.core.automation.invokers import CATEGORIZE_SCHEMA


class ScriptedService(GenerationService):
    """Returns (or raises) the scripted answers in order"""

    def __init__(self, answers: List, circuit_breaker: CircuitBreaker = None):
        super().__init__(circuit_breaker=circuit_breaker or CircuitBreaker(failure_threshold=2, timeout=60))
        self.answers = list(answers)
        self.calls: List[Dict[str, str]] = []

    async def _complete(self, system_prompt: str, prompt: str) -> Completion:
        self.calls.append({"system": system_prompt, "prompt": prompt})
        answer = self.answers.pop(0)
        if isinstance(answer, BaseException):
            raise answer
        return Completion(text=answer, input_tokens=1000, output_tokens=500)

    def get_pricing(self) -> Dict[str, float]:
        return {"input": 0.15, "output": 0.60}

    def get_model_name(self) -> str:
        return "scripted"


VALID = json.dumps({"category": "billing", "confidence": 0.8})


@pytest.mark.unit
@pytest.mark.asyncio
async def test_invoke_returns_validated_object():
    service = ScriptedService([VALID])

    result = await service.invoke("Categorize: refund please", CATEGORIZE_SCHEMA)

    assert result == {"category": "billing", "confidence": 0.8}
    assert service.calls[0]["prompt"] == "Categorize: refund please"
    assert '"category"' in service.calls[0]["system"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_invoke_tracks_usage_and_cost():
    service = ScriptedService([VALID])

    await service.invoke("prompt", CATEGORIZE_SCHEMA)

    assert service.last_usage["model"] == "scripted"
    assert service.last_usage["tokens"] == {"input": 1000, "output": 500}
    assert service.last_usage["cost_usd"] == 0.00045


@pytest.mark.unit
@pytest.mark.asyncio
async def test_invoke_schema_violation_raises():
    service = ScriptedService([json.dumps({"confidence": 0.8})])

    with pytest.raises(GenerationSchemaError):
        await service.invoke("prompt", CATEGORIZE_SCHEMA)

    # A bad answer is not a provider outage
    assert service.circuit_breaker.get_status()["failure_count"] == 0


@pytest.mark.unit
@pytest.mark.asyncio
async def test_invoke_wraps_provider_errors():
    service = ScriptedService([ConnectionError("connection reset")])

    with pytest.raises(GenerationError) as exc_info:
        await service.invoke("prompt", CATEGORIZE_SCHEMA)

    assert "connection reset" in exc_info.value.message
    assert exc_info.value.model == "scripted"
    assert isinstance(exc_info.value.__cause__, ConnectionError)
    assert service.circuit_breaker.get_status()["failure_count"] == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_invoke_fast_fails_when_breaker_open():
    service = ScriptedService([RuntimeError("down"), RuntimeError("down"), VALID])

    for _ in range(2):
        with pytest.raises(GenerationError):
            await service.invoke("prompt", CATEGORIZE_SCHEMA)

    with pytest.raises(GenerationUnavailableError):
        await service.invoke("prompt", CATEGORIZE_SCHEMA)

    # Third answer was never requested
    assert len(service.calls) == 2


@pytest.mark.unit
@pytest.mark.asyncio
async def test_invoke_success_closes_half_open_breaker():
    now = [0.0]
    breaker = CircuitBreaker(failure_threshold=1, timeout=10, clock=lambda: now[0])
    service = ScriptedService([RuntimeError("down"), VALID], circuit_breaker=breaker)

    with pytest.raises(GenerationError):
        await service.invoke("prompt", CATEGORIZE_SCHEMA)
    assert breaker.is_open()

    now[0] = 11.0
    result = await service.invoke("prompt", CATEGORIZE_SCHEMA)

    assert result["category"] == "billing"
    assert breaker.is_closed()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_cancelled_half_open_call_releases_its_slot():
    now = [0.0]
    breaker = CircuitBreaker(failure_threshold=1, timeout=10, half_open_max_calls=1, clock=lambda: now[0])
    service = ScriptedService(
        [RuntimeError("down"), asyncio.CancelledError(), VALID], circuit_breaker=breaker
    )

    with pytest.raises(GenerationError):
        await service.invoke("prompt", CATEGORIZE_SCHEMA)

    now[0] = 11.0
    with pytest.raises(asyncio.CancelledError):
        await service.invoke("prompt", CATEGORIZE_SCHEMA)

    assert breaker.is_half_open()
    assert not breaker.is_open()

    result = await service.invoke("prompt", CATEGORIZE_SCHEMA)

    assert result["category"] == "billing"
    assert breaker.is_closed()
