from __future__ import annotations

"""OpenAI chat-completions gateway used for reply generation."""

import asyncio
import logging
from typing import Any, Dict, Optional

import openai
from openai import AsyncOpenAI

from .errors import GenerationError
from .prompting import GenerationRequest
from .settings import LLMSettings, OpenAISettings, settings

logger = logging.getLogger(__name__)


def classify_failure(exc: BaseException) -> str:
    """Map a client exception onto a :class:`GenerationError` reason."""
    if isinstance(exc, GenerationError):
        return exc.reason
    if isinstance(exc, (openai.APITimeoutError, asyncio.TimeoutError)):
        return GenerationError.TIMEOUT
    if isinstance(exc, openai.RateLimitError):
        return GenerationError.QUOTA
    if isinstance(exc, (openai.APIConnectionError, openai.APIStatusError)):
        return GenerationError.UNREACHABLE
    return GenerationError.MALFORMED


class OpenAIChatClient:
    """Thin wrapper around AsyncOpenAI with retries, a hard timeout and cancellation."""

    def __init__(
        self,
        openai_cfg: Optional[OpenAISettings] = None,
        llm_cfg: Optional[LLMSettings] = None,
        *,
        client: Optional[AsyncOpenAI] = None,
    ) -> None:
        self._openai_cfg = openai_cfg or settings.openai
        self._llm_cfg = llm_cfg or settings.llm
        if client is None:
            api_key = self._openai_cfg.api_key
            if not api_key:
                raise GenerationError(
                    "OPENAI_API_KEY is required for real LLM usage",
                    reason=GenerationError.NOT_CONFIGURED,
                )
            self._client = AsyncOpenAI(
                api_key=api_key,
                base_url=self._openai_cfg.base_url,
                organization=self._openai_cfg.organization,
            )
            self._owns_client = True
        else:
            self._client = client
            self._owns_client = False

    async def close(self) -> None:
        if self._owns_client:
            await self._client.close()

    async def generate(
        self,
        request: GenerationRequest,
        cancel_event: Optional[asyncio.Event] = None,
        *,
        timeout: Optional[float] = None,
    ) -> str:
        """Return the generated text or raise :class:`GenerationError`.

        The whole call, retries included, is bounded by ``timeout`` (defaults to
        the configured request timeout). Setting ``cancel_event`` aborts the
        in-flight request.
        """
        limit = timeout if timeout is not None else self._llm_cfg.timeout
        try:
            return await asyncio.wait_for(self._race(request, cancel_event), timeout=limit)
        except asyncio.TimeoutError as exc:
            logger.warning("llm.generate.timeout", extra={"timeout": limit})
            raise GenerationError(
                f"generation exceeded {limit}s", reason=GenerationError.TIMEOUT
            ) from exc

    async def _race(self, request: GenerationRequest, cancel_event: Optional[asyncio.Event]) -> str:
        if cancel_event is None:
            return await self._complete_with_retries(request)

        generation = asyncio.create_task(self._complete_with_retries(request))
        stop = asyncio.create_task(cancel_event.wait())
        try:
            done, _ = await asyncio.wait({generation, stop}, return_when=asyncio.FIRST_COMPLETED)
            if generation in done:
                return generation.result()
            logger.info("llm.generate.cancelled")
            raise GenerationError("generation cancelled by client", reason=GenerationError.CANCELLED)
        finally:
            for task in (generation, stop):
                if not task.done():
                    task.cancel()

    async def _complete_with_retries(self, request: GenerationRequest) -> str:
        cfg = self._llm_cfg
        params: Dict[str, Any] = {
            "model": cfg.model,
            "messages": request.to_messages(),
            "temperature": request.temperature,
            "max_tokens": request.max_tokens,
            "top_p": cfg.top_p,
            "frequency_penalty": request.frequency_penalty,
            "presence_penalty": request.presence_penalty,
            "timeout": cfg.timeout,
        }

        attempt = 0
        last_error: Exception | None = None
        total_attempts = cfg.retry_limit + 1

        while attempt < total_attempts:
            attempt += 1
            try:
                resp = await self._client.chat.completions.create(**params)
                logger.info(
                    "llm.generate.complete",
                    extra={
                        "model": params.get("model"),
                        "attempt": attempt,
                        "max_tokens": params.get("max_tokens"),
                    },
                )
                for choice in getattr(resp, "choices", None) or []:
                    message = getattr(choice, "message", None)
                    if not message:
                        continue
                    content = getattr(message, "content", None)
                    if isinstance(content, str) and content.strip():
                        return content.strip()
                logger.warning(
                    "llm.generate.empty",
                    extra={"model": params.get("model"), "attempt": attempt},
                )
                raise GenerationError("completion had no text", reason=GenerationError.MALFORMED)
            except Exception as exc:
                last_error = exc
                logger.warning(
                    "llm.generate.error",
                    extra={"attempt": attempt, "model": params.get("model"), "error": repr(exc)},
                )
                if attempt >= total_attempts:
                    break
                await asyncio.sleep(cfg.retry_backoff_seconds * attempt)

        reason = classify_failure(last_error) if last_error else GenerationError.MALFORMED
        raise GenerationError(
            "LLM completion failed after retries", reason=reason, attempts=attempt
        ) from last_error


__all__ = ["OpenAIChatClient", "classify_failure"]
