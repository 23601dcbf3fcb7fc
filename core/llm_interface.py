# core/llm_interface.py
"""
Handles all direct interactions with the generative-text service.
One call in, one :class:`RawResponse` out: transport problems, timeouts and
malformed replies are returned as typed failures instead of being raised,
and nothing is retried here.

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at

    http://www.apache.org/licenses/LICENSE-2.0

Unless required by applicable law or agreed to in writing, software
distributed under the License is distributed on an "AS IS" BASIS,
WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
See the License for the specific language governing permissions and
limitations under the License.

Copyright 2025 Dennis Lewis
"""

# Standard library imports
import asyncio
from contextlib import asynccontextmanager

# Type hints
from collections.abc import AsyncIterator
from typing import Any

# Third-party imports
import httpx
import structlog

# Local imports
from artifacts import GenerationProfile
from config import StudyForgeSettings
from core.errors import NetworkError, UpstreamError, UpstreamTimeoutError
from core.usage import TokenUsage
from orchestration.models import RawResponse

logger = structlog.get_logger(__name__)


# Token parameter handling
def _completion_token_param(api_base: str) -> str:
    """Return the token count parameter expected by the provider."""
    if "api.openai.com" in api_base or "api.anthropic.com" in api_base:
        return "max_completion_tokens"
    return "max_tokens"


def build_http_client(config: StudyForgeSettings) -> httpx.AsyncClient:
    """Create the shared async client with the configured timeouts."""
    timeout = httpx.Timeout(
        config.HTTPX_TOTAL_TIMEOUT, connect=config.HTTPX_CONNECT_TIMEOUT
    )
    return httpx.AsyncClient(timeout=timeout)


class GenerationClient:
    """Issue single bounded calls to the configured provider."""

    def __init__(
        self,
        config: StudyForgeSettings,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config
        # Use a single async client for all requests to reuse connections
        self._client = http_client or build_http_client(config)
        self._owns_client = http_client is None
        logger.debug(
            f"GenerationClient initialized for provider '{config.LLM_PROVIDER}' with model '{config.GENERATION_MODEL}'."
        )

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "GenerationClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    @asynccontextmanager
    async def session(self) -> AsyncIterator["GenerationClient"]:
        """Bind the owned connection pool to the running event loop.

        A fresh pool is opened on entry and closed on exit, so callers that
        run each request on its own loop never reuse connections from a loop
        that has already closed. An injected client is left untouched.
        """
        if not self._owns_client:
            yield self
            return
        await self._client.aclose()
        self._client = build_http_client(self._config)
        try:
            yield self
        finally:
            await self._client.aclose()

    def _request_args(
        self, prompt: str, profile: GenerationProfile
    ) -> tuple[str, dict[str, Any], dict[str, str], dict[str, str]]:
        api_base = self._config.LLM_API_BASE.rstrip("/")
        model = self._config.GENERATION_MODEL
        if self._config.LLM_PROVIDER == "openai":
            payload = {
                "model": model,
                "messages": [{"role": "user", "content": prompt}],
                "temperature": profile.temperature,
                "top_p": profile.top_p,
                _completion_token_param(api_base): profile.max_output_tokens,
                "stream": False,
            }
            headers = {"Authorization": f"Bearer {self._config.LLM_API_KEY}"}
            return f"{api_base}/chat/completions", payload, headers, {}

        payload = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": profile.temperature,
                "topK": profile.top_k,
                "topP": profile.top_p,
                "maxOutputTokens": profile.max_output_tokens,
            },
        }
        params = {"key": self._config.LLM_API_KEY}
        return f"{api_base}/models/{model}:generateContent", payload, {}, params

    def _extract_reply(self, data: Any) -> tuple[str | None, TokenUsage | None]:
        if not isinstance(data, dict):
            return None, None
        if self._config.LLM_PROVIDER == "openai":
            usage = TokenUsage.from_openai(data.get("usage"))
            choices = data.get("choices")
            if not isinstance(choices, list) or not choices:
                return None, usage
            first = choices[0]
            message = first.get("message") if isinstance(first, dict) else None
            content = message.get("content") if isinstance(message, dict) else None
            return (content if isinstance(content, str) else None), usage

        usage = TokenUsage.from_gemini(data.get("usageMetadata"))
        candidates = data.get("candidates")
        if not isinstance(candidates, list) or not candidates:
            return None, usage
        first = candidates[0]
        content = first.get("content") if isinstance(first, dict) else None
        parts = content.get("parts") if isinstance(content, dict) else None
        if not isinstance(parts, list):
            return None, usage
        texts = [
            part["text"]
            for part in parts
            if isinstance(part, dict) and isinstance(part.get("text"), str)
        ]
        return ("".join(texts) if texts else None), usage

    async def call(
        self, prompt: str, profile: GenerationProfile, chunk_index: int = 0
    ) -> RawResponse:
        """Perform one upstream call and return its text or a typed failure."""
        url, payload, headers, params = self._request_args(prompt, profile)
        try:
            response = await asyncio.wait_for(
                self._client.post(url, json=payload, headers=headers, params=params),
                timeout=self._config.HTTPX_TOTAL_TIMEOUT,
            )
            response.raise_for_status()
            data = response.json()
        except (asyncio.TimeoutError, httpx.TimeoutException) as e_timeout:
            logger.debug(
                f"Generation call timed out for chunk {chunk_index}: {type(e_timeout).__name__}"
            )
            return RawResponse(
                chunk_index,
                failure=UpstreamTimeoutError(
                    f"Call exceeded its timeout ({type(e_timeout).__name__})"
                ),
            )
        except httpx.HTTPStatusError as e_status:
            status = e_status.response.status_code
            logger.debug(
                f"Generation call for chunk {chunk_index} returned HTTP {status}.",
                body_preview=e_status.response.text[:200],
            )
            return RawResponse(
                chunk_index,
                failure=UpstreamError(f"HTTP {status} from upstream", status_code=status),
            )
        except httpx.RequestError as e_req:
            logger.debug(
                f"Generation call for chunk {chunk_index} failed in transport: {e_req!r}"
            )
            return RawResponse(
                chunk_index, failure=NetworkError(f"{type(e_req).__name__}: {e_req}")
            )
        except ValueError:
            return RawResponse(
                chunk_index, failure=UpstreamError("Upstream reply is not JSON")
            )

        try:
            text, usage = self._extract_reply(data)
        except (AttributeError, KeyError, IndexError, TypeError, ValueError) as e_shape:
            logger.debug(
                f"Generation reply for chunk {chunk_index} has an unexpected shape: {e_shape!r}"
            )
            return RawResponse(
                chunk_index, failure=UpstreamError("Upstream reply has an unexpected shape")
            )
        if usage is not None:
            logger.debug(
                f"LLM ('{self._config.GENERATION_MODEL}') Usage - Prompt: {usage.prompt_tokens} tk, "
                f"Comp: {usage.completion_tokens} tk, Total: {usage.total_tokens} tk"
            )
        if text is None:
            return RawResponse(
                chunk_index,
                failure=UpstreamError("Upstream reply is missing the text field"),
                usage=usage,
            )
        return RawResponse(chunk_index, text=text, usage=usage)
