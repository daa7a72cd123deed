import json
from unittest.mock import MagicMock

import pytest

from mailbot.agent.tools import TOOL_CATALOG, ToolDispatcher, clamp_count, get_tool_schemas
from mailbot.models import EmailMessage, Label, SendResult, UnsubscribeInfo
from mailbot.services.mailbox import MailboxError


@pytest.fixture
def dispatcher(mock_mailbox: MagicMock) -> ToolDispatcher:
    return ToolDispatcher(mock_mailbox)


def test_catalog_schema_shape() -> None:
    """Every catalog tool converts to an OpenAI function schema with its required params."""
    schemas = get_tool_schemas()
    assert len(schemas) == len(TOOL_CATALOG) == 16
    by_name = {s["function"]["name"]: s["function"] for s in schemas}
    assert by_name["search_emails"]["parameters"]["required"] == ["query"]
    assert "is:unread" in by_name["search_emails"]["description"]
    assert by_name["get_labels"]["parameters"]["properties"] == {}
    ids = by_name["batch_apply_label"]["parameters"]["properties"]["messageIds"]
    assert ids == {
        "type": "array",
        "description": "Array of email message IDs",
        "items": {"type": "string"},
    }


@pytest.mark.parametrize(
    "value, expected",
    [
        (None, 5), (0, 1), (-3, 1), (1, 1), (7, 7), (10, 10), (11, 10), (500, 10), ("4", 4), ("x", 5),
        (float("inf"), 10), (float("-inf"), 1), (1e999, 10), (float("nan"), 5),
    ],
)
def test_clamp_count(value, expected) -> None:
    assert clamp_count(value) == expected


@pytest.mark.asyncio
async def test_unknown_tool_returns_text(dispatcher: ToolDispatcher) -> None:
    result = await dispatcher.execute("launch_rockets", {})
    assert result == "Unknown tool: launch_rockets"


@pytest.mark.asyncio
@pytest.mark.parametrize("tool", [t.name for t in TOOL_CATALOG])
async def test_every_tool_returns_string_with_empty_args(
    dispatcher: ToolDispatcher, mock_mailbox: MagicMock, tool: str
) -> None:
    """No argument shape makes execute raise."""
    mock_mailbox.search.return_value = []
    mock_mailbox.list_recent.return_value = []
    mock_mailbox.list_labels.return_value = []
    mock_mailbox.find_marketing.return_value = []
    result = await dispatcher.execute(tool, {})
    assert isinstance(result, str)
    assert result


@pytest.mark.asyncio
async def test_every_tool_survives_mailbox_errors(
    dispatcher: ToolDispatcher, mock_mailbox: MagicMock
) -> None:
    for name in ("search", "list_recent", "get_by_id", "send", "list_labels", "batch_modify"):
        getattr(mock_mailbox, name).side_effect = MailboxError("connection refused")
    args = {"query": "x", "messageId": "1", "to": "a@b.c", "subject": "s", "body": "b", "messageIds": ["1"]}
    for tool in ("search_emails", "list_recent_emails", "get_email_details", "send_email", "get_labels", "batch_star_emails"):
        result = await dispatcher.execute(tool, args)
        assert result.startswith("❌ Error running")
        assert "connection refused" in result


@pytest.mark.asyncio
async def test_unexpected_exception_is_folded(dispatcher: ToolDispatcher, mock_mailbox: MagicMock) -> None:
    mock_mailbox.star.side_effect = RuntimeError("boom")
    result = await dispatcher.execute("star_email", {"messageId": "1"})
    assert result == "❌ Error running star_email: boom"


@pytest.mark.asyncio
async def test_missing_required_argument(dispatcher: ToolDispatcher, mock_mailbox: MagicMock) -> None:
    result = await dispatcher.execute("get_email_details", {})
    assert result.startswith("❌")
    assert "messageId" in result
    mock_mailbox.get_by_id.assert_not_called()


@pytest.mark.asyncio
async def test_search_defaults_max_results(
    dispatcher: ToolDispatcher, mock_mailbox: MagicMock, sample_emails
) -> None:
    mock_mailbox.search.return_value = sample_emails
    result = await dispatcher.execute("search_emails", {"query": "is:unread"})
    mock_mailbox.search.assert_awaited_once_with("is:unread", 5)
    assert result.startswith("*1. Subject 1*")


@pytest.mark.asyncio
async def test_search_clamps_max_results(dispatcher: ToolDispatcher, mock_mailbox: MagicMock) -> None:
    mock_mailbox.search.return_value = []
    result = await dispatcher.execute("search_emails", {"query": "x", "maxResults": 50})
    mock_mailbox.search.assert_awaited_once_with("x", 10)
    assert result == "No emails found."


@pytest.mark.asyncio
async def test_list_recent_clamps_zero(dispatcher: ToolDispatcher, mock_mailbox: MagicMock) -> None:
    mock_mailbox.list_recent.return_value = []
    await dispatcher.execute("list_recent_emails", {"count": 0})
    mock_mailbox.list_recent.assert_awaited_once_with(1)


@pytest.mark.asyncio
async def test_list_recent_clamps_json_infinity(dispatcher: ToolDispatcher, mock_mailbox: MagicMock) -> None:
    mock_mailbox.list_recent.return_value = []
    result = await dispatcher.execute("list_recent_emails", json.loads('{"count": 1e999}'))
    mock_mailbox.list_recent.assert_awaited_once_with(10)
    assert result == "No emails found."


@pytest.mark.asyncio
async def test_get_email_details(dispatcher: ToolDispatcher, mock_mailbox: MagicMock) -> None:
    mock_mailbox.get_by_id.return_value = EmailMessage(
        id="abc", subject="Hi", sender="a@b.c", date="today", body="Body text"
    )
    result = await dispatcher.execute("get_email_details", {"messageId": "abc"})
    assert result.endswith(">>> Body text")

    mock_mailbox.get_by_id.return_value = None
    assert await dispatcher.execute("get_email_details", {"messageId": "zzz"}) == (
        "❌ Email not found with ID: zzz"
    )


@pytest.mark.asyncio
async def test_send_email_success_and_failure(dispatcher: ToolDispatcher, mock_mailbox: MagicMock) -> None:
    args = {"to": "bob@example.com", "subject": "Hi", "body": "Hello"}
    mock_mailbox.send.return_value = SendResult(success=True)
    assert await dispatcher.execute("send_email", args) == "✅ Email sent successfully to bob@example.com"
    mock_mailbox.send.assert_awaited_with(["bob@example.com"], "Hi", "Hello")

    mock_mailbox.send.return_value = SendResult(success=False, error="quota exceeded")
    assert await dispatcher.execute("send_email", args) == "❌ Failed to send email: quota exceeded"

    mock_mailbox.send.return_value = SendResult(success=False)
    assert await dispatcher.execute("send_email", args) == "❌ Failed to send email: Unknown error"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "tool, method, ok_text, fail_text",
    [
        ("mark_as_read", "mark_read", "✅ Email marked as read: m1", "❌ Failed to mark email as read"),
        ("trash_email", "trash", "🗑️ Email moved to trash: m1", "❌ Failed to trash email"),
        ("star_email", "star", "⭐ Email starred: m1", "❌ Failed to star email"),
        ("unstar_email", "unstar", "✅ Star removed from email: m1", "❌ Failed to unstar email"),
        ("archive_email", "archive", "📁 Email archived: m1", "❌ Failed to archive email"),
    ],
)
async def test_single_message_actions(
    dispatcher: ToolDispatcher, mock_mailbox: MagicMock, tool, method, ok_text, fail_text
) -> None:
    getattr(mock_mailbox, method).return_value = True
    assert await dispatcher.execute(tool, {"messageId": "m1"}) == ok_text
    getattr(mock_mailbox, method).return_value = False
    assert await dispatcher.execute(tool, {"messageId": "m1"}) == fail_text


@pytest.mark.asyncio
async def test_labels(dispatcher: ToolDispatcher, mock_mailbox: MagicMock) -> None:
    mock_mailbox.create_label.return_value = Label(id="Label_9", name="Travel")
    assert await dispatcher.execute("create_label", {"name": "Travel"}) == (
        '✅ Label created: "Travel" (ID: Label_9)'
    )
    mock_mailbox.create_label.return_value = None
    assert await dispatcher.execute("create_label", {"name": "Travel"}) == "❌ Failed to create label"

    mock_mailbox.delete_label.return_value = True
    assert await dispatcher.execute("delete_label", {"labelId": "Label_9"}) == "✅ Label deleted"

    mock_mailbox.list_labels.return_value = [Label(id="Label_9", name="Travel")]
    assert "• Travel (ID: `Label_9`)" in await dispatcher.execute("get_labels", {})


@pytest.mark.asyncio
async def test_batch_operations(dispatcher: ToolDispatcher, mock_mailbox: MagicMock) -> None:
    mock_mailbox.batch_modify.return_value = True
    assert await dispatcher.execute("batch_star_emails", {"messageIds": ["a", "b"]}) == "⭐ Starred 2 emails"
    mock_mailbox.batch_modify.assert_awaited_with(["a", "b"], add_labels=["STARRED"])

    result = await dispatcher.execute("batch_apply_label", {"messageIds": ["a", "b", "c"], "labelId": "L1"})
    assert result == "✅ Applied label to 3 emails"
    mock_mailbox.batch_modify.assert_awaited_with(["a", "b", "c"], add_labels=["L1"])


@pytest.mark.asyncio
async def test_marketing_and_unsubscribe(dispatcher: ToolDispatcher, mock_mailbox: MagicMock) -> None:
    mock_mailbox.find_marketing.return_value = []
    assert await dispatcher.execute("find_marketing_emails", {}) == "No marketing emails found."
    mock_mailbox.find_marketing.assert_awaited_once_with(10)

    mock_mailbox.get_unsubscribe_info.return_value = None
    assert await dispatcher.execute("get_unsubscribe_info", {"messageId": "m1"}) == (
        "❌ Could not get unsubscribe info for email: m1"
    )

    mock_mailbox.get_unsubscribe_info.return_value = UnsubscribeInfo(
        email=EmailMessage(id="m1", subject="Promo", sender="shop@example.com")
    )
    result = await dispatcher.execute("get_unsubscribe_info", {"messageId": "m1"})
    assert result.endswith("⚠️ No unsubscribe option found in this email.")
