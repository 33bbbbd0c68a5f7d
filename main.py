from __future__ import annotations

from contextlib import asynccontextmanager
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from chat_relay.api.router import api_router
from chat_relay.core.errors import RelayError
from chat_relay.core.settings import Settings
from chat_relay.services.chat_relay import ChatRelay, build_chat_relay

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    owned_client = None

    # A relay handed to create_app() (tests, embedding) is used as-is.
    if getattr(app.state, "chat", None) is None:
        app.state.chat = await build_chat_relay(settings)
        owned_client = app.state.chat.client
        logger.info(
            f"Chat relay ready (request model: {settings.request_model}, "
            f"api key configured: {settings.is_api_key_configured})"
        )

    yield

    # Cleanup
    logger.info("Shutting down...")

    if owned_client is not None:
        try:
            await owned_client.close()
            logger.info("Anthropic client closed.")
        except Exception as e:
            logger.error(f"Error closing Anthropic client: {e}")


async def relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
    return JSONResponse({"error": exc.message}, status_code=exc.status_code)


def create_app(
    settings: Optional[Settings] = None, relay: Optional[ChatRelay] = None
) -> FastAPI:
    settings = settings or Settings()

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    app = FastAPI(
        title="Claude Chat Relay",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.chat = relay

    if settings.cors_allow_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_allow_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.add_exception_handler(RelayError, relay_error_handler)
    app.include_router(api_router)

    @app.get("/healthz")
    async def healthz():
        return {"ok": True}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000)
