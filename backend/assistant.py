"""
Natural-language capability used for fallback replies and task enhancement.

The dispatcher only depends on the `Assistant` interface; `AnthropicAssistant`
is the production implementation. Any failure is reported as
`CapabilityUnavailable` so callers can degrade gracefully.
"""
import json
import logging
from abc import ABC, abstractmethod
from typing import Optional

import anthropic

from config import Settings
from prompts import ENHANCEMENT_PROMPT, FALLBACK_SYSTEM_PROMPT

logger = logging.getLogger(__name__)


class CapabilityUnavailable(Exception):
    """The language model could not be reached or gave an unusable answer."""


class Assistant(ABC):
    @abstractmethod
    async def enhance(self, raw_message: str, current: dict, today: str) -> Optional[dict]:
        """Suggest missing task fields. Keys: title, priority, dueDate, description."""

    @abstractmethod
    async def respond(self, message: str, context: str, today: str) -> str:
        """Answer a message that is not a recognised command."""


def strip_code_fence(text: str) -> str:
    """Remove a surrounding markdown code block, if present."""
    text = text.strip()
    if text.startswith("```"):
        lines = text.split("\n")
        lines = lines[1:]  # Remove first line (```json)
        if lines and lines[-1].strip() == "```":
            lines = lines[:-1]  # Remove last line (```)
        text = "\n".join(lines)
    return text


class AnthropicAssistant(Assistant):
    def __init__(self, api_key: str, model: str, max_tokens: int = 512, timeout: float = 10.0):
        self.model = model
        self.max_tokens = max_tokens
        self.client = anthropic.AsyncAnthropic(api_key=api_key, timeout=timeout, max_retries=0)

    async def _complete(self, content: str, system: Optional[str] = None) -> str:
        params = dict(
            model=self.model,
            max_tokens=self.max_tokens,
            messages=[{"role": "user", "content": content}],
        )
        if system:
            params["system"] = system
        try:
            response = await self.client.messages.create(**params)
        except anthropic.APIError as e:
            raise CapabilityUnavailable(f"API error: {e}") from e

        text = "".join(block.text for block in response.content if block.type == "text").strip()
        if not text:
            raise CapabilityUnavailable("empty response from model")
        logger.debug("Model response: %s", text)
        return text

    async def enhance(self, raw_message: str, current: dict, today: str) -> Optional[dict]:
        prompt = ENHANCEMENT_PROMPT.format(
            message=raw_message,
            title=current.get("title", ""),
            priority=current.get("priority", "medium"),
            due_date=current.get("due_date") or "none",
            unresolved_due=current.get("unresolved_due") or "none",
            today=today,
        )
        text = strip_code_fence(await self._complete(prompt))
        try:
            parsed = json.loads(text)
        except json.JSONDecodeError as e:
            raise CapabilityUnavailable("Failed to parse AI response") from e
        if not isinstance(parsed, dict):
            raise CapabilityUnavailable("AI response is not a JSON object")
        return parsed

    async def respond(self, message: str, context: str, today: str) -> str:
        return await self._complete(
            f"{message}\n\nContext: {context}",
            system=FALLBACK_SYSTEM_PROMPT.format(today=today),
        )


def build_assistant(settings: Settings) -> Optional[Assistant]:
    """Build the configured assistant, or None when no API key is set."""
    if not settings.assistant_enabled:
        logger.warning("ANTHROPIC_API_KEY not configured; natural-language fallback disabled")
        return None
    return AnthropicAssistant(
        api_key=settings.anthropic_api_key,
        model=settings.model,
        max_tokens=settings.max_tokens,
        timeout=settings.llm_timeout_sec,
    )
