"""
Implementation Plan Generator
Uses the Anthropic Messages API to turn an enriched ticket into an
implementation plan.
"""

import time
from dataclasses import dataclass
from typing import Optional

import httpx
import structlog

from shared.config import DEFAULT_ANTHROPIC_MODEL
from shared.schemas.ticket import Ticket

from .prompt import build_implementation_plan_prompt

logger = structlog.get_logger()

ANTHROPIC_API_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"

CONNECTION_TEST_PROMPT = "Hello, this is a test message. Please respond with a short greeting."


class GenerationError(Exception):
    """Raised when the generation API fails or returns no text"""


@dataclass
class GenerationMetrics:
    """Metrics for a single generation call."""
    model: str
    prompt_chars: int
    output_chars: int
    input_tokens: int
    output_tokens: int
    latency_seconds: float

    @property
    def tokens_per_second(self) -> float:
        if self.latency_seconds > 0:
            return self.output_tokens / self.latency_seconds
        return 0.0


class PlanGenerator:
    """Generates implementation plans for tickets with an Anthropic model"""

    DEFAULT_MAX_TOKENS = 4000

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_ANTHROPIC_MODEL,
        api_url: str = ANTHROPIC_API_URL,
        timeout: float = 300.0,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.api_url = api_url
        self.timeout = timeout
        self.max_tokens = max_tokens
        self._client = client
        self._owns_client = client is None
        self.last_metrics: Optional[GenerationMetrics] = None

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create a persistent HTTP client for connection reuse."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self.timeout, connect=30.0))
        return self._client

    async def close(self):
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "PlanGenerator":
        return self

    async def __aexit__(self, *exc_info):
        await self.close()

    async def generate_text(self, prompt: str, model: Optional[str] = None) -> str:
        """
        Send a single user message and return the first content block's text.

        Raises:
            GenerationError: on transport failure, non-2xx status or empty content
        """
        model = model or self.model
        request = {
            "model": model,
            "max_tokens": self.max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        headers = {
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "content-type": "application/json",
        }

        start_time = time.time()
        try:
            response = await self._get_client().post(self.api_url, json=request, headers=headers)
        except httpx.HTTPError as e:
            raise GenerationError(f"Failed to send request to Anthropic API: {e}") from e

        if response.status_code >= 400:
            raise GenerationError(
                f"Anthropic API request failed with status {response.status_code}: {response.text}"
            )

        try:
            body = response.json()
        except ValueError as e:
            raise GenerationError(f"Failed to deserialize Anthropic API response: {e}") from e

        content = body.get("content") if isinstance(body, dict) else None
        if not content:
            raise GenerationError("Anthropic API returned empty response")

        text = content[0].get("text", "") if isinstance(content[0], dict) else ""
        usage = body.get("usage") or {}
        self.last_metrics = GenerationMetrics(
            model=model,
            prompt_chars=len(prompt),
            output_chars=len(text),
            input_tokens=usage.get("input_tokens", 0),
            output_tokens=usage.get("output_tokens", 0),
            latency_seconds=time.time() - start_time,
        )
        logger.debug(
            "Generation complete",
            model=model,
            output_tokens=self.last_metrics.output_tokens,
            latency=f"{self.last_metrics.latency_seconds:.1f}s",
            tps=f"{self.last_metrics.tokens_per_second:.1f}",
        )
        return text

    async def test_connection(self) -> str:
        """Send a short greeting to verify the API key"""
        return await self.generate_text(CONNECTION_TEST_PROMPT)

    async def generate_implementation_plan(self, ticket: Ticket) -> str:
        """Build the plan prompt for a ticket and generate the plan"""
        prompt = build_implementation_plan_prompt(ticket)
        logger.info("Generating implementation plan", ticket_id=ticket.id, model=self.model)
        return await self.generate_text(prompt)
