# Orion Agent
# Copyright (C) 2025 Phoenix Link (Pty) Ltd. All Rights Reserved.
#
# This file is part of Orion Agent.
#
# Orion Agent is dual-licensed:
#
# 1. Open Source: GNU Affero General Public License v3.0 (AGPL-3.0)
#    You may use, modify, and distribute this file under AGPL-3.0.
#    See LICENSE for the full text.
#
# 2. Commercial: Available from Phoenix Link (Pty) Ltd
#    For proprietary use, SaaS deployment, or enterprise licensing.
#    See LICENSE-ENTERPRISE.md or contact info@phoenixlink.co.za
#
# Contributions require a signed CLA. See COPYRIGHT.md and CLA.md.
"""
Orion Apply -- LLM Retry Requester (v7.5.0)

The apply pipeline only depends on a callable

    async (messages: list[{"role": "user"|"assistant", "content": str}]) -> str

This module provides the default one: an OpenAI-compatible chat
completions client over httpx, with exponential backoff for transient
failures (rate limits, 5xx, timeouts).
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from collections.abc import Awaitable, Callable

import httpx

from orion_apply.core.config import ApplySettings
from orion_apply.core.errors import RequesterError
from orion_apply.core.logging import get_logger

logger = logging.getLogger("orion_apply.llm.providers")

LlmMessage = dict[str, str]
LlmRequester = Callable[[list[LlmMessage]], Awaitable[str]]

# ── Retry configuration ──────────────────────────────────────────────────

API_MAX_RETRIES = 3
API_RETRY_DELAY_SECONDS = 2

_RETRYABLE_KEYWORDS = [
    "timeout",
    "timed out",
    "connection",
    "rate limit",
    "503",
    "502",
    "500",
    "temporarily unavailable",
    "overloaded",
    "retry",
]

_RETRYABLE_STATUS = (429, 500, 502, 503, 504)


async def retry_api_call(
    func: Callable[[], Awaitable[str]],
    max_retries: int = API_MAX_RETRIES,
    delay_seconds: float = API_RETRY_DELAY_SECONDS,
    component: str = "retry",
) -> str:
    """Retry an async API call with exponential backoff; raise RequesterError on give-up."""
    last_error: Exception | None = None

    attempts_made = 0
    for attempt in range(max_retries):
        attempts_made = attempt + 1
        try:
            return await func()
        except httpx.HTTPStatusError as e:
            last_error = e
            status = e.response.status_code

            if status in (401, 403):
                logger.error("[%s] Auth error %d (not retrying)", component, status)
                raise RequesterError(
                    f"API key rejected (HTTP {status}). Check the key in the configured "
                    "environment variable."
                ) from e

            if status in _RETRYABLE_STATUS and attempt < max_retries - 1:
                wait_time = delay_seconds * (2**attempt)
                logger.warning(
                    "[%s] Retrying in %.1fs (HTTP %d, attempt %d/%d)",
                    component,
                    wait_time,
                    status,
                    attempts_made,
                    max_retries,
                )
                await asyncio.sleep(wait_time)
                continue

            logger.error(
                "[%s] HTTP %d after %d attempt(s): %s", component, status, attempts_made, str(e)[:200]
            )
            break

        except (httpx.HTTPError, OSError) as e:
            last_error = e
            error_str = str(e).lower() or type(e).__name__.lower()
            retryable = isinstance(e, httpx.TransportError) or any(
                kw in error_str for kw in _RETRYABLE_KEYWORDS
            )

            if not retryable or attempt >= max_retries - 1:
                logger.error(
                    "[%s] API call failed after %d attempt(s): %s",
                    component,
                    attempts_made,
                    str(e)[:200],
                )
                break

            wait_time = delay_seconds * (2**attempt)
            logger.warning(
                "[%s] Retrying in %.1fs (attempt %d/%d): %s",
                component,
                wait_time,
                attempts_made,
                max_retries,
                str(e)[:100],
            )
            await asyncio.sleep(wait_time)

    raise RequesterError(f"API error after {attempts_made} attempt(s): {last_error}") from last_error


class OpenAICompatibleRequester:
    """Default retry requester: POST {base_url}/chat/completions."""

    def __init__(
        self,
        settings: ApplySettings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        retry_delay_seconds: float = API_RETRY_DELAY_SECONDS,
    ):
        self.settings = settings or ApplySettings()
        self._transport = transport
        self._retry_delay = retry_delay_seconds

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        api_key = os.environ.get(self.settings.llm_api_key_env)
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        return headers

    async def _post(self, messages: list[LlmMessage]) -> str:
        payload = {"model": self.settings.llm_model, "messages": messages}
        url = f"{self.settings.llm_base_url.rstrip('/')}/chat/completions"
        async with httpx.AsyncClient(
            timeout=self.settings.llm_timeout, transport=self._transport
        ) as client:
            resp = await client.post(url, headers=self._headers(), json=payload)
            resp.raise_for_status()
            data = resp.json()
        try:
            return data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise RequesterError(f"Unexpected completion payload: {str(data)[:200]}") from exc

    async def __call__(self, messages: list[LlmMessage]) -> str:
        started = time.monotonic()
        try:
            text = await retry_api_call(
                lambda: self._post(messages),
                max_retries=self.settings.llm_max_retries,
                delay_seconds=self._retry_delay,
                component="retry",
            )
        except RequesterError:
            get_logger().llm(
                "Retry",
                model=self.settings.llm_model,
                latency_ms=int((time.monotonic() - started) * 1000),
                success=False,
            )
            raise
        get_logger().llm(
            "Retry",
            model=self.settings.llm_model,
            latency_ms=int((time.monotonic() - started) * 1000),
            chars=len(text),
        )
        return text
