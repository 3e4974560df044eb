"""
Generation services for ruleloop

Prompt in, object conforming to a declared JSON schema out.
"""

from .generation_service import Completion, GenerationService
from .openai_service import OpenAIGenerationService
from .anthropic_service import AnthropicGenerationService
from .registry import GenerationRegistry
from .schema import extract_json_object, validate_output

__all__ = [
    "Completion",
    "GenerationService",
    "OpenAIGenerationService",
    "AnthropicGenerationService",
    "GenerationRegistry",
    "extract_json_object",
    "validate_output",
]
