"""Anthropic Messages API client (plain httpx, no SDK)."""

import logging

import httpx

from storepulse.config import settings

log = logging.getLogger(__name__)

ANTHROPIC_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"


class ModelInvocationError(Exception):
    pass


class AnthropicClient:
    def __init__(self, api_key: str, model: str | None = None, transport: httpx.AsyncBaseTransport | None = None):
        self.api_key = api_key
        self.model = model or settings.ANTHROPIC_MODEL
        self.transport = transport

    async def invoke(self, system_prompt: str, user_prompt: str, max_tokens: int) -> str:
        """Single-turn call: one system prompt, one user message, text back."""
        async with httpx.AsyncClient(timeout=60.0, transport=self.transport) as client:
            resp = await client.post(
                ANTHROPIC_URL,
                headers={
                    "x-api-key": self.api_key,
                    "anthropic-version": ANTHROPIC_VERSION,
                    "content-type": "application/json",
                },
                json={
                    "model": self.model,
                    "max_tokens": max_tokens,
                    "system": system_prompt,
                    "messages": [{"role": "user", "content": user_prompt}],
                },
            )
            resp.raise_for_status()
            data = resp.json()

        blocks = data.get("content") or []
        if not blocks:
            raise ModelInvocationError(f"Model returned no content (stop_reason={data.get('stop_reason')})")
        return "".join(b.get("text", "") for b in blocks if b.get("type", "text") == "text")
