from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
from typing import Any, AsyncIterable, List, Optional, Tuple

from anthropic import AsyncAnthropic
from pydantic import ValidationError

from chat_relay.core.errors import (
    ClientDisconnected,
    ConfigurationError,
    InvalidRequest,
    RelayError,
    UnknownFailure,
    classify_upstream_error,
)
from chat_relay.core.settings import Settings
from chat_relay.schemas.chat import AggregatedResponse, ChatRequest, UsageTally

logger = logging.getLogger(__name__)

FALLBACK_CONTENT = "I couldn't generate a response."


def _usage_value(usage: Any, field: str) -> Optional[int]:
    if usage is None:
        return None
    if isinstance(usage, dict):
        return usage.get(field)
    return getattr(usage, field, None)


async def aggregate_stream(
    events: AsyncIterable[Any],
    disconnect_check: Any = None,
) -> Tuple[str, UsageTally]:
    """
    Fold an upstream event stream into (text, usage).

    Input tokens arrive once on message_start, output tokens on message_delta
    (last one wins). Text comes only from text deltas, concatenated in
    arrival order. Everything else is skipped.
    """
    usage = UsageTally()
    parts: List[str] = []

    async for event in events:
        if disconnect_check is not None and await disconnect_check.is_disconnected():
            raise ClientDisconnected()

        kind = getattr(event, "type", None)

        if kind == "message_start":
            message = getattr(event, "message", None)
            input_tokens = _usage_value(getattr(message, "usage", None), "input_tokens")
            if input_tokens is not None:
                usage.input_tokens = input_tokens

        elif kind == "content_block_delta":
            delta = getattr(event, "delta", None)
            if getattr(delta, "type", None) == "text_delta":
                parts.append(getattr(delta, "text", None) or "")

        elif kind == "message_delta":
            output_tokens = _usage_value(getattr(event, "usage", None), "output_tokens")
            if output_tokens is not None:
                usage.output_tokens = output_tokens

    return "".join(parts), usage


@dataclass
class ChatRelay:
    client: Any
    settings: Settings

    def parse_request(self, body: Any) -> ChatRequest:
        if not isinstance(body, dict) or not isinstance(body.get("messages"), list):
            raise InvalidRequest()
        try:
            return ChatRequest.model_validate(body)
        except ValidationError as e:
            logger.info(f"Rejected chat request: {e.error_count()} validation error(s)")
            raise InvalidRequest() from e

    def effective_max_tokens(self, requested: Optional[int]) -> int:
        ceiling = self.settings.max_tokens
        if requested is None:
            return ceiling
        return min(requested, ceiling)

    async def handle(
        self, body: Any, disconnect_check: Any = None
    ) -> AggregatedResponse:
        req = self.parse_request(body)

        # Checked on every request, never at startup.
        if not self.settings.is_api_key_configured:
            raise ConfigurationError()

        upstream_messages = [m.to_upstream() for m in req.messages]
        max_tokens = self.effective_max_tokens(req.max_tokens)
        temperature = (
            req.temperature
            if req.temperature is not None
            else self.settings.default_temperature
        )

        logger.info(
            f"Processing request with {len(upstream_messages)} messages, "
            f"max tokens: {max_tokens}"
        )

        call = self._stream_completion(
            upstream_messages, max_tokens, temperature, disconnect_check
        )
        timeout = self.settings.stream_timeout_seconds

        try:
            if timeout is not None:
                content, usage = await asyncio.wait_for(call, timeout=timeout)
            else:
                content, usage = await call
        except ClientDisconnected:
            logger.warning("Caller disconnected; abandoned upstream stream.")
            raise
        except asyncio.TimeoutError as e:
            logger.warning(f"Upstream stream exceeded {timeout}s; aborted.")
            raise UnknownFailure() from e
        except RelayError:
            raise
        except Exception as e:
            logger.exception(f"Claude API error: {e}")
            raise classify_upstream_error(e) from e

        logger.info(
            f"Response generated: {len(content)} chars, "
            f"{usage.total_tokens} tokens used"
        )

        return AggregatedResponse(
            content=content or FALLBACK_CONTENT,
            usage=usage,
            model=self.settings.reported_model,
        )

    async def _stream_completion(
        self,
        messages: List[dict],
        max_tokens: int,
        temperature: float,
        disconnect_check: Any,
    ) -> Tuple[str, UsageTally]:
        stream = await self.client.messages.create(
            model=self.settings.request_model,
            max_tokens=max_tokens,
            temperature=temperature,
            messages=messages,
            stream=True,
        )
        # Closing the stream releases the upstream connection on every exit path.
        async with stream:
            return await aggregate_stream(stream, disconnect_check=disconnect_check)


def build_anthropic_client(settings: Settings) -> AsyncAnthropic:
    # Failures surface immediately to the caller; nothing is retried.
    return AsyncAnthropic(
        api_key=settings.anthropic_api_key,
        base_url=settings.anthropic_base_url,
        max_retries=0,
    )


async def build_chat_relay(settings: Settings) -> ChatRelay:
    return ChatRelay(client=build_anthropic_client(settings), settings=settings)
