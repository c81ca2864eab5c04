"""
AI Extraction Client

Last-resort price extraction through an OpenAI-compatible chat
completions API. Used only when a page was fetched but no selector or
structured data yielded a price.
"""

from __future__ import annotations

import logging
from typing import Optional

import openai
from openai import OpenAI

from ..models import ErrorCategory
from ..resilience import ScrapeError

logger = logging.getLogger(__name__)


class AiExtractionClient:
    """
    Thin chat-completions transport for the AI fallback tier.

    Usage:
        client = AiExtractionClient(api_key="sk-...", model="gpt-4o-mini")
        reply = client.complete(system_prompt, prompt, timeout=30)
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gpt-4o-mini",
        base_url: Optional[str] = None,
        max_tokens: int = 200,
        client: Optional[OpenAI] = None,
    ):
        """
        Args:
            api_key: API key (the SDK falls back to OPENAI_API_KEY)
            model: Model identifier
            base_url: Optional base URL for OpenAI-compatible endpoints
            max_tokens: Completion token limit
            client: Pre-built OpenAI client (tests inject a mock)
        """
        if client is None:
            client_kwargs: dict = {"api_key": api_key, "max_retries": 0}
            if base_url:
                client_kwargs["base_url"] = base_url
            client = OpenAI(**client_kwargs)
        self._client = client
        self.model = model
        self.max_tokens = max_tokens

    def complete(self, system_prompt: str, prompt: str, timeout: float) -> str:
        """
        Run one chat completion and return the reply text.

        SDK retries are disabled; the pipeline's retry policy owns retries.

        Raises:
            ScrapeError: classified TIMEOUT, NETWORK_ERROR or by HTTP status;
                PARSE_ERROR when the reply has no choices
        """
        try:
            response = self._client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": prompt},
                ],
                temperature=0,
                max_tokens=self.max_tokens,
                response_format={"type": "json_object"},
                timeout=timeout,
            )
        except openai.APITimeoutError as e:
            raise ScrapeError(
                f"AI extraction timed out after {timeout:.1f}s", category=ErrorCategory.TIMEOUT
            ) from e
        except openai.APIConnectionError as e:
            raise ScrapeError(
                f"AI extraction connection failed: {e}", category=ErrorCategory.NETWORK_ERROR
            ) from e
        except openai.RateLimitError as e:
            # Quota exhaustion on our side, not the retailer blocking us
            raise ScrapeError(
                f"AI extraction rate limited: {e}", category=ErrorCategory.NETWORK_ERROR
            ) from e
        except openai.APIStatusError as e:
            raise ScrapeError(
                f"AI extraction HTTP {e.status_code}", http_status=e.status_code
            ) from e
        except openai.APIError as e:
            raise ScrapeError(
                f"AI extraction API error: {e}", category=ErrorCategory.NETWORK_ERROR
            ) from e

        if not response.choices:
            raise ScrapeError(
                "AI extraction returned no choices: price not found",
                category=ErrorCategory.PARSE_ERROR,
            )
        return response.choices[0].message.content or ""
