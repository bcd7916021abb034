"""
Text-transform collaborator backed by the Anthropic Messages API.
"""

import abc
import asyncio
import logging
from typing import Optional

import anthropic

from src.config import LLMSettings
from src.utils.logging import Timer

logger = logging.getLogger(__name__)

PROMPT_TEMPLATE = (
    "Rewrite this message in a {tone} tone ({description}). "
    "Return ONLY the rewritten message, with no intro, no explanation and no quotes:"
    "\n\n{message}"
)


class RewriteUnavailable(Exception):
    """The rewrite model could not produce a result."""


def build_prompt(message: str, tone_label: str, tone_description: str) -> str:
    return PROMPT_TEMPLATE.format(
        tone=tone_label.lower(),
        description=tone_description.lower(),
        message=message,
    )


class Rewriter(abc.ABC):
    """Opaque text transform: message + tone in, rewritten message out."""

    @abc.abstractmethod
    async def rewrite(self, text: str, tone_label: str, tone_description: str) -> str:
        """
        Raises:
            RewriteUnavailable: on any upstream failure or empty output
        """

    def close(self) -> None:
        """Release network resources."""


class AnthropicRewriter(Rewriter):
    """Rewriter that calls Claude through the official SDK in a worker thread."""

    def __init__(
        self,
        api_key: str,
        model: str,
        max_tokens: int = 512,
        timeout: int = 30,
        client: Optional[anthropic.Anthropic] = None,
    ):
        self._model = model
        self._max_tokens = max_tokens
        self._timeout = timeout
        self._client = client or anthropic.Anthropic(api_key=api_key, timeout=timeout)

    @classmethod
    def from_settings(cls, settings: LLMSettings) -> Optional["AnthropicRewriter"]:
        if not settings.anthropic_api_key:
            return None
        return cls(
            api_key=settings.anthropic_api_key.get_secret_value(),
            model=settings.anthropic_model,
            max_tokens=settings.rewrite_max_tokens,
            timeout=settings.llm_api_timeout,
        )

    def _create(self, prompt: str) -> str:
        response = self._client.messages.create(
            model=self._model,
            max_tokens=self._max_tokens,
            messages=[{"role": "user", "content": prompt}],
        )
        return "".join(
            getattr(block, "text", "") or "" for block in (response.content or [])
        ).strip()

    async def rewrite(self, text: str, tone_label: str, tone_description: str) -> str:
        prompt = build_prompt(text, tone_label, tone_description)
        try:
            with Timer("anthropic.rewrite", logger):
                result = await asyncio.to_thread(self._create, prompt)
        except anthropic.APITimeoutError as e:
            logger.error(f"Anthropic request timed out after {self._timeout}s")
            raise RewriteUnavailable("Rewrite request timed out") from e
        except anthropic.APIStatusError as e:
            logger.error(f"Anthropic API error (status {e.status_code}): {e}")
            raise RewriteUnavailable("Rewrite service returned an error") from e
        except anthropic.AnthropicError as e:
            logger.error(f"Anthropic error: {e}")
            raise RewriteUnavailable("Rewrite service unreachable") from e

        if not result:
            logger.error("Anthropic returned an empty rewrite")
            raise RewriteUnavailable("Rewrite service returned no text")
        return result

    def close(self) -> None:
        try:
            self._client.close()
        except Exception as e:
            logger.warning("Failed to close Anthropic client: %s", e)


class UnconfiguredRewriter(Rewriter):
    """Stand-in used when no API key is configured; every call fails as unavailable."""

    async def rewrite(self, text: str, tone_label: str, tone_description: str) -> str:
        logger.error("Rewrite requested but ANTHROPIC_API_KEY is not configured")
        raise RewriteUnavailable("Rewrite service is not configured")
