"""
Anthropic client for the writing agents.

Wraps the async Messages API with tool-use support. Response content is
returned as plain dict blocks so callers never depend on SDK types.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

logger = logging.getLogger("writing_agents.common.llm_client")

DEFAULT_MODEL = "claude-sonnet-4-20250514"


class LLMClient:
    """Async Anthropic Messages client."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = DEFAULT_MODEL,
        max_tokens: int = 4000,
        client: Any = None,
    ) -> None:
        self.model = model
        self.max_tokens = max_tokens
        self._client = client

        if self._client is not None:
            return

        if not api_key:
            logger.info("Anthropic API key not provided, LLM client unavailable")
            return

        import anthropic

        self._client = anthropic.AsyncAnthropic(api_key=api_key)

    @property
    def is_available(self) -> bool:
        return self._client is not None

    async def create(
        self,
        messages: List[Dict[str, Any]],
        *,
        tools: Optional[List[Dict[str, Any]]] = None,
        system: Optional[str] = None,
        max_tokens: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """
        Send a Messages API request.

        Returns:
            The response content blocks as dicts, e.g.
            ``{"type": "text", "text": ...}`` or
            ``{"type": "tool_use", "id": ..., "name": ..., "input": {...}}``
        """
        if not self.is_available:
            raise RuntimeError("LLM client is not available")

        kwargs: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": max_tokens or self.max_tokens,
            "messages": messages,
        }
        if tools:
            kwargs["tools"] = tools
        if system:
            kwargs["system"] = system

        response = await self._client.messages.create(**kwargs)
        return [_block_to_dict(block) for block in response.content]


def _block_to_dict(block: Any) -> Dict[str, Any]:
    if isinstance(block, dict):
        return block
    return block.model_dump(exclude_none=True)


def find_block(content: List[Dict[str, Any]], block_type: str) -> Optional[Dict[str, Any]]:
    """Return the first content block of the given type, if any."""
    for block in content:
        if block.get("type") == block_type:
            return block
    return None
