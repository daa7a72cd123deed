from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass
class ConversationState:
    """Per-user conversation history (user/assistant turns only)."""

    user_id: str
    history: List[Dict[str, str]] = field(default_factory=list)
    last_activity: float = 0.0


@dataclass
class ThreadSession:
    """Chat thread bound to a single user for prefix-free interaction."""

    user_id: str
    channel: str
    thread: str
    last_activity: float = 0.0


@dataclass(frozen=True)
class InboundMessage:
    """A slash command or thread message as delivered by the chat platform."""

    text: str
    user_id: str
    channel: str
    thread_id: str | None = None
    response_url: str | None = None


@dataclass
class EmailMessage:
    """A mailbox item as returned by the Gmail HTTP API."""

    id: str
    subject: str = ""
    sender: str = ""
    to: str = ""
    date: str = ""
    snippet: str = ""
    body: str | None = None
    thread_id: str = ""
    labels: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EmailMessage":
        return cls(
            id=str(data.get("id", "")),
            subject=data.get("subject") or "",
            sender=data.get("from") or "",
            to=data.get("to") or "",
            date=data.get("date") or "",
            snippet=data.get("snippet") or "",
            body=data.get("body"),
            thread_id=data.get("threadId") or "",
            labels=list(data.get("labels") or []),
        )


@dataclass
class MarketingEmail(EmailMessage):
    """Email flagged as promotional, with whatever unsubscribe options it carries."""

    unsubscribe_links: List[str] = field(default_factory=list)
    unsubscribe_email: str | None = None
    has_unsubscribe: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MarketingEmail":
        base = EmailMessage.from_dict(data)
        return cls(
            **base.__dict__,
            unsubscribe_links=list(data.get("unsubscribeLinks") or []),
            unsubscribe_email=data.get("unsubscribeEmail"),
            has_unsubscribe=bool(data.get("hasUnsubscribe", False)),
        )


@dataclass
class UnsubscribeInfo:
    email: EmailMessage
    unsubscribe_links: List[str] = field(default_factory=list)
    unsubscribe_email: str | None = None
    has_unsubscribe: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UnsubscribeInfo":
        return cls(
            email=EmailMessage.from_dict(data.get("email") or {}),
            unsubscribe_links=list(data.get("unsubscribeLinks") or []),
            unsubscribe_email=data.get("unsubscribeEmail"),
            has_unsubscribe=bool(data.get("hasUnsubscribe", False)),
        )


@dataclass(frozen=True)
class Label:
    id: str
    name: str
    type: str = "user"


@dataclass(frozen=True)
class SendResult:
    success: bool
    error: str | None = None
