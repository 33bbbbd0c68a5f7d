from fastapi import Request
from chat_relay.core.settings import Settings
from chat_relay.services.chat_relay import ChatRelay


def get_chat_relay(request: Request) -> ChatRelay:
    relay = getattr(request.app.state, "chat", None)
    if not relay:
        raise RuntimeError("Chat relay not initialized")
    return relay


def get_settings(request: Request) -> Settings:
    settings = getattr(request.app.state, "settings", None)
    if not settings:
        raise RuntimeError("Settings not initialized")
    return settings
