"""
Action Invokers

One coroutine per supported action. Each builds a prompt from the event,
calls the generation service with a declared output schema and returns an
InvocationEnvelope, or raises.

- categorize: classify a knowledge query, write the category back onto it
- draft_response: draft an answer to a knowledge query from top articles
- validate: check the initial input of a running workflow execution
"""

import logging
from typing import Any, Dict

from ..generation.generation_service import GenerationService
from .event_source import EventSource
from .types import InvocationEnvelope, RuleSnapshot

logger = logging.getLogger(__name__)

QUERY_CATEGORIES = ("support", "billing", "technical", "feature_request", "other")

ARTICLES_LOADED = 10
ARTICLES_IN_PROMPT = 3
ARTICLE_EXCERPT_CHARS = 200

CATEGORIZE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "category": {"type": "string"},
        "confidence": {"type": "number"},
        "reasoning": {"type": "string"},
    },
    "required": ["category", "confidence"],
}

DRAFT_RESPONSE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "draft_response": {"type": "string"},
        "confidence": {"type": "number"},
        "related_articles": {"type": "array", "items": {"type": "string"}},
    },
    "required": ["draft_response", "confidence"],
}

VALIDATE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "is_valid": {"type": "boolean"},
        "issues": {"type": "array", "items": {"type": "string"}},
        "suggestions": {"type": "array", "items": {"type": "string"}},
    },
    "required": ["is_valid", "issues"],
}


class ActionInvokers:
    """Holds the collaborators every invoker needs"""

    def __init__(self, generation: GenerationService, event_source: EventSource):
        self.generation = generation
        self.event_source = event_source

    async def categorize(self, event: Dict[str, Any], rule: RuleSnapshot) -> InvocationEnvelope:
        prompt = (
            f'Categorize this customer query: "{event.get("query", "")}"\n\n'
            f"Allowed categories: {', '.join(QUERY_CATEGORIES)}\n\n"
            "Pick the single most appropriate category, give a confidence "
            "between 0 and 1 and a one-sentence reasoning."
        )
        result = await self.generation.invoke(prompt, CATEGORIZE_SCHEMA)

        await self.event_source.set_query_satisfaction(event["id"], result["category"])
        logger.info(
            f"Rule {rule.id}: query {event['id']} categorized as '{result['category']}'"
        )
        return InvocationEnvelope(trigger=event, data=result)

    async def draft_response(self, event: Dict[str, Any], rule: RuleSnapshot) -> InvocationEnvelope:
        articles = await self.event_source.list_articles(limit=ARTICLES_LOADED)

        if articles:
            knowledge = "\n".join(
                f"- {article['title']}: {(article.get('content') or '')[:ARTICLE_EXCERPT_CHARS]}"
                for article in articles[:ARTICLES_IN_PROMPT]
            )
        else:
            knowledge = "- (no knowledge articles available)"

        prompt = (
            f'Draft a response to this customer query: "{event.get("query", "")}"\n\n'
            f"Relevant knowledge:\n{knowledge}\n\n"
            "Write a helpful, concise draft, rate your confidence between 0 and 1 "
            "and list the titles of the articles you relied on."
        )
        result = await self.generation.invoke(prompt, DRAFT_RESPONSE_SCHEMA)
        return InvocationEnvelope(trigger=event, data=result)

    async def validate(self, event: Dict[str, Any], rule: RuleSnapshot) -> InvocationEnvelope:
        initial_input = event.get("initial_input") or "(empty)"
        prompt = (
            f"Validate the input of workflow run '{event.get('workflow_name', 'unknown')}'.\n\n"
            f"Initial input:\n{initial_input}\n\n"
            "Check that required fields are present, that values are well formed "
            "and flag anything likely to break the run. Report whether the input "
            "is valid, the issues found and suggestions to fix them."
        )
        result = await self.generation.invoke(prompt, VALIDATE_SCHEMA)
        return InvocationEnvelope(trigger=event, data=result)
