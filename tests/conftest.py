import sys
from pathlib import Path
from typing import List
from unittest.mock import AsyncMock, MagicMock

import pytest

_root = Path(__file__).resolve().parents[1]
_src = _root / "src"
if _src.exists() and str(_src) not in sys.path:
    sys.path.insert(0, str(_src))

from mailbot.models import EmailMessage  # noqa: E402
from mailbot.services.mailbox import HttpMailboxService  # noqa: E402
from mailbot.services.memory_store import MemoryStore  # noqa: E402


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory(clock: FakeClock) -> MemoryStore:
    """MemoryStore with a 30 minute timeout and 20 message bound on the fake clock."""
    return MemoryStore(timeout_seconds=1800, max_history=20, clock=clock)


@pytest.fixture
def sample_emails() -> List[EmailMessage]:
    return [
        EmailMessage(
            id=f"id{i}",
            subject=f"Subject {i}",
            sender=f"sender{i}@example.com",
            date=f"2026-10-0{i}",
            snippet=f"Snippet {i}",
        )
        for i in range(1, 4)
    ]


@pytest.fixture
def mock_mailbox() -> MagicMock:
    """Mailbox with every capability mocked as an AsyncMock."""
    m = MagicMock(spec=HttpMailboxService)
    for name in (
        "list_recent",
        "search",
        "get_by_id",
        "send",
        "mark_read",
        "trash",
        "star",
        "unstar",
        "archive",
        "batch_modify",
        "create_label",
        "delete_label",
        "list_labels",
        "find_marketing",
        "get_unsubscribe_info",
        "close",
    ):
        setattr(m, name, AsyncMock())
    return m
