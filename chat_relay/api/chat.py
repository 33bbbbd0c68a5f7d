from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from chat_relay.core.dependencies import get_chat_relay, get_settings
from chat_relay.core.errors import InvalidRequest
from chat_relay.core.settings import Settings
from chat_relay.schemas.chat import AggregatedResponse, HealthConfig, HealthResponse
from chat_relay.services.chat_relay import ChatRelay

router = APIRouter()


@router.post("/chat", response_model=AggregatedResponse)
async def post_chat(
    request: Request,
    chat: ChatRelay = Depends(get_chat_relay),
):
    """
    Forward the conversation upstream and answer with the complete reply.
    The body is read raw so shape errors map to a 400 with our own message.
    """
    try:
        body = await request.json()
    except ValueError as e:
        raise InvalidRequest() from e

    return await chat.handle(body, disconnect_check=request)


@router.get("/chat", response_model=HealthResponse)
async def get_chat(settings: Settings = Depends(get_settings)):
    """
    Configuration echo. Never calls upstream.
    """
    return HealthResponse(
        message="Claude 4 Sonnet Chat API",
        status="Ready",
        model=settings.reported_model,
        config=HealthConfig(
            maxTokens=settings.max_tokens,
            defaultTemperature=settings.default_temperature,
        ),
        endpoints={"POST /api/chat": "Send chat messages"},
        environment=(
            "API Key Configured"
            if settings.is_api_key_configured
            else "API Key Missing"
        ),
    )
