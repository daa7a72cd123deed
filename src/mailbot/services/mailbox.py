import logging
from typing import Any, Dict, List, Protocol, Sequence

import httpx

from ..models import EmailMessage, Label, MarketingEmail, SendResult, UnsubscribeInfo
from ..settings import get_settings

logger = logging.getLogger(__name__)


class MailboxError(Exception):
    """The mailbox API could not be reached or returned an unreadable response."""


class MailboxService(Protocol):
    """Mailbox capabilities consumed by the tool dispatcher and direct commands."""

    async def list_recent(self, count: int = 5, query: str | None = None) -> List[EmailMessage]: ...

    async def search(self, query: str, max_results: int = 5) -> List[EmailMessage]: ...

    async def get_by_id(self, message_id: str) -> EmailMessage | None: ...

    async def send(self, to: Sequence[str], subject: str, body: str) -> SendResult: ...

    async def mark_read(self, message_id: str) -> bool: ...

    async def trash(self, message_id: str) -> bool: ...

    async def star(self, message_id: str) -> bool: ...

    async def unstar(self, message_id: str) -> bool: ...

    async def archive(self, message_id: str) -> bool: ...

    async def batch_modify(
        self,
        message_ids: Sequence[str],
        add_labels: Sequence[str] | None = None,
        remove_labels: Sequence[str] | None = None,
    ) -> bool: ...

    async def create_label(self, name: str) -> Label | None: ...

    async def delete_label(self, label_id: str) -> bool: ...

    async def list_labels(self) -> List[Label]: ...

    async def find_marketing(self, max_results: int = 10) -> List[MarketingEmail]: ...

    async def get_unsubscribe_info(self, message_id: str) -> UnsubscribeInfo | None: ...


class HttpMailboxService:
    """Async client for the Gmail HTTP API.

    Every response is a JSON envelope with a ``success`` flag. A ``success:
    false`` envelope is a domain failure and is returned as a value; network
    errors and undecodable bodies raise MailboxError.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {"Content-Type": "application/json"}
            if self._api_key:
                headers["x-api-key"] = self._api_key
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                headers=headers,
                timeout=self._timeout,
            )
        return self._client

    async def close(self) -> None:
        """Close the underlying HTTP client. Idempotent."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.debug("Mailbox HTTP client closed")

    async def _call(
        self,
        endpoint: str,
        method: str = "GET",
        body: Dict[str, Any] | None = None,
        params: Dict[str, Any] | None = None,
    ) -> Dict[str, Any]:
        """Send one request and return the decoded JSON envelope.

        Args:
            endpoint: Path below the API base url, e.g. ``/api/emails``.
            method: HTTP method.
            body: Optional JSON body.
            params: Optional query parameters.

        Returns:
            Dict[str, Any]: The decoded response envelope.

        Raises:
            MailboxError: On transport failure or a non-JSON response.
        """
        client = self._get_client()
        try:
            response = await client.request(method, endpoint, json=body, params=params)
        except httpx.HTTPError as e:
            logger.error("Mailbox request %s %s failed: %s", method, endpoint, e)
            raise MailboxError(f"Mailbox API request failed: {e}") from e

        try:
            payload = response.json()
        except ValueError as e:
            logger.error(
                "Mailbox response for %s %s was not JSON (status %s)",
                method,
                endpoint,
                response.status_code,
            )
            raise MailboxError(
                f"Mailbox API returned an invalid response (HTTP {response.status_code})"
            ) from e

        if not isinstance(payload, dict):
            raise MailboxError("Mailbox API returned an unexpected response shape")
        if not payload.get("success", False):
            logger.info(
                "Mailbox %s %s unsuccessful: %s",
                method,
                endpoint,
                payload.get("error") or "no error given",
            )
        return payload

    @staticmethod
    def _emails(payload: Dict[str, Any]) -> List[EmailMessage]:
        return [EmailMessage.from_dict(item) for item in payload.get("emails") or []]

    async def list_recent(self, count: int = 5, query: str | None = None) -> List[EmailMessage]:
        params: Dict[str, Any] = {"maxResults": count}
        if query:
            params["q"] = query
        return self._emails(await self._call("/api/emails", params=params))

    async def search(self, query: str, max_results: int = 5) -> List[EmailMessage]:
        payload = await self._call(
            "/api/emails/search",
            "POST",
            {"query": query, "maxResults": max_results},
        )
        return self._emails(payload)

    async def get_by_id(self, message_id: str) -> EmailMessage | None:
        payload = await self._call(f"/api/emails/{message_id}")
        email = payload.get("email")
        return EmailMessage.from_dict(email) if email else None

    async def send(self, to: Sequence[str], subject: str, body: str) -> SendResult:
        payload = await self._call(
            "/api/emails/send",
            "POST",
            {"to": list(to), "subject": subject, "body": body},
        )
        return SendResult(success=bool(payload.get("success")), error=payload.get("error"))

    async def _succeeded(self, endpoint: str, method: str, body: Dict[str, Any] | None = None) -> bool:
        payload = await self._call(endpoint, method, body)
        return bool(payload.get("success"))

    async def mark_read(self, message_id: str) -> bool:
        return await self._succeeded(f"/api/emails/{message_id}/read", "POST")

    async def trash(self, message_id: str) -> bool:
        return await self._succeeded(f"/api/emails/{message_id}", "DELETE")

    async def star(self, message_id: str) -> bool:
        return await self._succeeded(f"/api/emails/{message_id}/star", "POST")

    async def unstar(self, message_id: str) -> bool:
        return await self._succeeded(f"/api/emails/{message_id}/star", "DELETE")

    async def archive(self, message_id: str) -> bool:
        return await self._succeeded(f"/api/emails/{message_id}/archive", "POST")

    async def batch_modify(
        self,
        message_ids: Sequence[str],
        add_labels: Sequence[str] | None = None,
        remove_labels: Sequence[str] | None = None,
    ) -> bool:
        body: Dict[str, Any] = {"messageIds": list(message_ids)}
        if add_labels:
            body["addLabelIds"] = list(add_labels)
        if remove_labels:
            body["removeLabelIds"] = list(remove_labels)
        return await self._succeeded("/api/emails/batch/labels", "POST", body)

    async def create_label(self, name: str) -> Label | None:
        payload = await self._call("/api/labels", "POST", {"name": name})
        if not payload.get("success"):
            return None
        data = payload.get("data") or payload.get("label") or payload
        return Label(id=str(data.get("id", "")), name=data.get("name") or name)

    async def delete_label(self, label_id: str) -> bool:
        return await self._succeeded(f"/api/labels/{label_id}", "DELETE")

    async def list_labels(self) -> List[Label]:
        payload = await self._call("/api/labels")
        return [
            Label(
                id=str(item.get("id", "")),
                name=item.get("name") or "",
                type=item.get("type") or "user",
            )
            for item in payload.get("labels") or []
        ]

    async def find_marketing(self, max_results: int = 10) -> List[MarketingEmail]:
        payload = await self._call("/api/emails/marketing", params={"maxResults": max_results})
        return [MarketingEmail.from_dict(item) for item in payload.get("emails") or []]

    async def get_unsubscribe_info(self, message_id: str) -> UnsubscribeInfo | None:
        payload = await self._call(f"/api/emails/{message_id}/unsubscribe")
        if not payload.get("success"):
            return None
        return UnsubscribeInfo.from_dict(payload)


def get_mailbox_service() -> HttpMailboxService:
    """Build the mailbox client from settings."""
    settings = get_settings()
    return HttpMailboxService(
        base_url=settings.gmail_api_url,
        api_key=settings.gmail_api_key,
        timeout=settings.gmail_request_timeout_seconds,
    )
