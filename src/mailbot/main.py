import json
import logging
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any
from urllib.parse import parse_qs

from fastapi import BackgroundTasks, FastAPI, Request, Response

from .agent import MailAssistantService, ToolDispatcher
from .commands import ChatRouter
from .models import InboundMessage
from .services.mailbox import get_mailbox_service
from .services.memory_store import MemoryStore
from .services.session_registry import SessionRegistry
from .services.slack import get_slack_client
from .settings import Settings, get_settings


def setup_server_logging(level: str = "INFO") -> logging.Logger:
    """Configure and return the application logger."""
    logs_dir = Path("logs")
    logs_dir.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger("mailbot")
    if logger.handlers:
        return logger

    logger.setLevel(level)
    fmt = logging.Formatter("%(asctime)s %(levelname)s %(name)s - %(message)s")

    ch = logging.StreamHandler()
    ch.setFormatter(fmt)
    logger.addHandler(ch)

    fh = RotatingFileHandler(logs_dir / "server.log", maxBytes=5_000_000, backupCount=3)
    fh.setFormatter(fmt)
    logger.addHandler(fh)

    return logger


settings = get_settings()
LOGGER = setup_server_logging(settings.log_level)


def build_router(settings: Settings) -> ChatRouter:
    """Wire the shared stores, the mailbox, the assistant and Slack into one router."""
    memory = MemoryStore(
        timeout_seconds=settings.memory_timeout_seconds,
        max_history=settings.max_history_messages,
    )
    sessions = SessionRegistry(memory, timeout_seconds=settings.session_timeout_seconds)
    mailbox = get_mailbox_service()
    assistant = MailAssistantService(memory, ToolDispatcher(mailbox), settings=settings)
    return ChatRouter(
        assistant=assistant,
        memory=memory,
        sessions=sessions,
        mailbox=mailbox,
        chat=get_slack_client(),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the router at startup; close HTTP clients on shutdown."""
    if not hasattr(app.state, "router"):
        app.state.router = build_router(settings)
    if not settings.openai_api_key:
        LOGGER.warning("OPENAI_API_KEY is not set; /gmail requests will fail")
    if not settings.slack_bot_token:
        LOGGER.warning("SLACK_BOT_TOKEN is not set; thread sessions cannot post messages")
    LOGGER.info("Gmail assistant ready")

    yield

    LOGGER.info("Shutting down...")
    await app.state.router.close()


app = FastAPI(
    title="Slack Gmail Assistant",
    version="0.1.0",
    debug=settings.debug,
    lifespan=lifespan,
)


def _form_value(form: dict[str, list[str]], key: str) -> str:
    values = form.get(key) or [""]
    return values[0]


@app.get("/health")
async def health() -> dict[str, Any]:
    """Health check for load balancers and monitoring."""
    return {"status": "ok"}


@app.post("/slack/commands")
async def slack_command(request: Request, background_tasks: BackgroundTasks) -> Response:
    """Acknowledge a slash command right away and handle it in the background.

    Slack posts ``application/x-www-form-urlencoded`` with ``command``,
    ``text``, ``user_id``, ``channel_id`` and ``response_url``. Replies go
    back through ``response_url``.
    """
    form = parse_qs((await request.body()).decode("utf-8"), keep_blank_values=True)
    command = _form_value(form, "command")
    router: ChatRouter = request.app.state.router

    if command not in router.commands:
        LOGGER.warning("Rejected unknown command %s", command)
        return Response(content=f"Unknown command: {command}", media_type="text/plain")

    message = InboundMessage(
        text=_form_value(form, "text"),
        user_id=_form_value(form, "user_id"),
        channel=_form_value(form, "channel_id"),
        response_url=_form_value(form, "response_url") or None,
    )
    background_tasks.add_task(router.handle_command, command, message)
    return Response(status_code=200)


@app.post("/slack/events")
async def slack_events(request: Request, background_tasks: BackgroundTasks) -> Any:
    """Events API endpoint: answers URL verification and routes thread messages."""
    try:
        payload = json.loads(await request.body())
    except json.JSONDecodeError as e:
        LOGGER.error("Invalid event payload (not JSON): %s", e)
        return Response(status_code=400, content="Invalid JSON payload")

    if not isinstance(payload, dict):
        return Response(status_code=400, content="Invalid event payload")

    if payload.get("type") == "url_verification":
        return {"challenge": payload.get("challenge", "")}

    if payload.get("type") != "event_callback":
        return Response(status_code=200)

    event = payload.get("event") or {}
    if event.get("type") != "message" or event.get("bot_id") or event.get("subtype"):
        return Response(status_code=200)

    thread_ts = event.get("thread_ts")
    if not thread_ts:
        return Response(status_code=200)

    message = InboundMessage(
        text=event.get("text") or "",
        user_id=event.get("user") or "",
        channel=event.get("channel") or "",
        thread_id=thread_ts,
    )
    router: ChatRouter = request.app.state.router
    background_tasks.add_task(router.handle_thread_message, message)
    return Response(status_code=200)


def run() -> None:
    """Run the server with uvicorn using host/port from settings."""
    import uvicorn

    uvicorn.run("mailbot.main:app", host=settings.host, port=settings.port, log_level=settings.log_level.lower())
