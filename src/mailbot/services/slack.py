import logging
from typing import Any, Dict, Protocol

import httpx

from ..settings import get_settings

logger = logging.getLogger(__name__)


class ChatPlatformError(Exception):
    """Slack rejected a call or could not be reached."""


class ChatPlatform(Protocol):
    async def respond(self, response_url: str, text: str, replace_original: bool = False) -> None: ...

    async def post_message(self, channel: str, text: str, thread_ts: str | None = None) -> str: ...

    async def update_message(self, channel: str, ts: str, text: str) -> None: ...


class SlackClient:
    """Minimal Slack Web API client: ephemeral replies, thread posts and edits."""

    def __init__(
        self,
        token: str | None,
        api_url: str = "https://slack.com/api",
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._token = token
        self._api_url = api_url.rstrip("/")
        self._timeout = timeout
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _api_call(self, method: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """POST to a Web API method and return the decoded body; raise if ok is false."""
        headers = {"Authorization": f"Bearer {self._token}"} if self._token else {}
        try:
            response = await self._get_client().post(
                f"{self._api_url}/{method}", json=payload, headers=headers
            )
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Slack %s failed: %s", method, e)
            raise ChatPlatformError(f"Slack {method} failed: {e}") from e

        if not data.get("ok"):
            error = data.get("error") or "unknown_error"
            logger.error("Slack %s returned error: %s", method, error)
            raise ChatPlatformError(f"Slack {method} failed: {error}")
        return data

    async def respond(self, response_url: str, text: str, replace_original: bool = False) -> None:
        """Send an ephemeral reply through a slash command's response_url."""
        payload: Dict[str, Any] = {"response_type": "ephemeral", "text": text}
        if replace_original:
            payload["replace_original"] = True
        try:
            response = await self._get_client().post(response_url, json=payload)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("Slack response_url post failed: %s", e)
            raise ChatPlatformError(f"Slack reply failed: {e}") from e

    async def post_message(self, channel: str, text: str, thread_ts: str | None = None) -> str:
        """Post a message (optionally into a thread) and return its ts."""
        payload: Dict[str, Any] = {"channel": channel, "text": text}
        if thread_ts:
            payload["thread_ts"] = thread_ts
        data = await self._api_call("chat.postMessage", payload)
        return str(data.get("ts", ""))

    async def update_message(self, channel: str, ts: str, text: str) -> None:
        await self._api_call("chat.update", {"channel": channel, "ts": ts, "text": text})


def get_slack_client() -> SlackClient:
    settings = get_settings()
    return SlackClient(token=settings.slack_bot_token, api_url=settings.slack_api_url)
