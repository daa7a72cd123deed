import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Tuple

from ..services.formatting import (
    format_email,
    format_email_list,
    format_labels,
    format_marketing_emails,
    format_unsubscribe_info,
)
from ..services.mailbox import MailboxError, MailboxService

logger = logging.getLogger(__name__)

MIN_RESULTS = 1
MAX_RESULTS = 10
DEFAULT_RESULTS = 5
DEFAULT_MARKETING_RESULTS = 10

FAILURE_MARKER = "❌"


@dataclass(frozen=True)
class ToolParameter:
    name: str
    type: str
    description: str
    required: bool = False
    items_type: str | None = None


@dataclass(frozen=True)
class ToolDefinition:
    """Model-facing description of one mailbox operation."""

    name: str
    description: str
    parameters: Tuple[ToolParameter, ...] = ()

    @property
    def required(self) -> Tuple[str, ...]:
        return tuple(p.name for p in self.parameters if p.required)

    def to_openai_schema(self) -> Dict[str, Any]:
        """Return the tool in OpenAI function format."""
        properties: Dict[str, Any] = {}
        for param in self.parameters:
            prop: Dict[str, Any] = {"type": param.type, "description": param.description}
            if param.items_type:
                prop["items"] = {"type": param.items_type}
            properties[param.name] = prop
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": {
                    "type": "object",
                    "properties": properties,
                    "required": list(self.required),
                },
            },
        }


SEARCH_DESCRIPTION = """Search for emails using Gmail search syntax. ALL Gmail search operators are supported:

PEOPLE:
- from:sender@email.com - from specific sender
- to:recipient@email.com - to specific recipient
- cc:email - carbon copied
- bcc:email - blind carbon copied
- deliveredto:email - delivered to address

CONTENT:
- subject:word - word in subject
- "exact phrase" - exact phrase match
- word1 OR word2 - either word
- -word - exclude word
- +word - exact word match
- word1 AROUND n word2 - words within n words of each other

STATUS:
- is:unread / is:read - read status
- is:starred - starred emails
- is:important - important emails
- is:snoozed - snoozed emails

ATTACHMENTS:
- has:attachment - has any attachment
- has:drive / has:document / has:spreadsheet / has:presentation - Google Drive files
- has:youtube - YouTube links
- filename:pdf - attachment filename/type
- larger:5M / smaller:1M - size filters (K, M for KB, MB)

LOCATION:
- in:inbox / in:sent / in:drafts / in:trash / in:spam / in:anywhere
- label:labelname - has specific label
- category:primary / category:social / category:promotions / category:updates / category:forums

TIME:
- after:YYYY/MM/DD / before:YYYY/MM/DD - date range
- newer_than:7d / older_than:1m - relative time (d=days, m=months, y=years)

OTHER:
- list:listname@domain.com - mailing list emails

Combine operators: "from:boss@company.com is:unread has:attachment after:2024/01/01\""""


def _message_id_param(description: str) -> ToolParameter:
    return ToolParameter("messageId", "string", description, required=True)


def _message_ids_param(description: str) -> ToolParameter:
    return ToolParameter("messageIds", "array", description, required=True, items_type="string")


TOOL_CATALOG: Tuple[ToolDefinition, ...] = (
    ToolDefinition(
        "search_emails",
        SEARCH_DESCRIPTION,
        (
            ToolParameter("query", "string", "Gmail search query", required=True),
            ToolParameter("maxResults", "number", "Maximum number of results (default: 5, max: 10)"),
        ),
    ),
    ToolDefinition(
        "list_recent_emails",
        "List the most recent emails from the inbox",
        (ToolParameter("count", "number", "Number of emails to retrieve (default: 5, max: 10)"),),
    ),
    ToolDefinition(
        "get_email_details",
        "Get the full content of a specific email by its ID",
        (_message_id_param("The email message ID"),),
    ),
    ToolDefinition(
        "send_email",
        "Compose and send an email. Use this when the user wants to send, compose, or draft an email.",
        (
            ToolParameter("to", "string", "Recipient email address", required=True),
            ToolParameter("subject", "string", "Email subject line", required=True),
            ToolParameter("body", "string", "Email body content", required=True),
        ),
    ),
    ToolDefinition(
        "mark_as_read",
        "Mark an email as read",
        (_message_id_param("The email message ID to mark as read"),),
    ),
    ToolDefinition(
        "trash_email",
        "Move an email to trash",
        (_message_id_param("The email message ID to trash"),),
    ),
    ToolDefinition(
        "create_label",
        "Create a new Gmail label for organizing emails",
        (ToolParameter("name", "string", "The name for the new label", required=True),),
    ),
    ToolDefinition(
        "delete_label",
        "Delete a Gmail label",
        (ToolParameter("labelId", "string", "The ID of the label to delete", required=True),),
    ),
    ToolDefinition(
        "get_labels",
        "Get all Gmail labels. Use this to find label IDs for applying labels to emails.",
    ),
    ToolDefinition(
        "star_email",
        "Star an email to mark it as important",
        (_message_id_param("The email message ID to star"),),
    ),
    ToolDefinition(
        "unstar_email",
        "Remove star from an email",
        (_message_id_param("The email message ID to unstar"),),
    ),
    ToolDefinition(
        "archive_email",
        "Archive an email (remove from inbox but keep in All Mail)",
        (_message_id_param("The email message ID to archive"),),
    ),
    ToolDefinition(
        "batch_star_emails",
        "Star multiple emails at once. Use this when the user wants to star all emails "
        "from a sender or matching a search.",
        (_message_ids_param("Array of email message IDs to star"),),
    ),
    ToolDefinition(
        "batch_apply_label",
        "Apply a label to multiple emails at once",
        (
            _message_ids_param("Array of email message IDs"),
            ToolParameter("labelId", "string", "The label ID to apply", required=True),
        ),
    ),
    ToolDefinition(
        "find_marketing_emails",
        "Find promotional/marketing emails that the user might want to unsubscribe from. "
        "Returns emails with unsubscribe links.",
        (
            ToolParameter(
                "maxResults",
                "number",
                "Maximum number of marketing emails to find (default: 10)",
            ),
        ),
    ),
    ToolDefinition(
        "get_unsubscribe_info",
        "Get unsubscribe links for a specific email. Use this to help users unsubscribe "
        "from newsletters.",
        (_message_id_param("The email message ID to get unsubscribe info for"),),
    ),
)


def get_tool_schemas(catalog: Tuple[ToolDefinition, ...] = TOOL_CATALOG) -> List[Dict[str, Any]]:
    """Return the catalog in OpenAI tools format."""
    return [tool.to_openai_schema() for tool in catalog]


def clamp_count(value: Any, default: int = DEFAULT_RESULTS) -> int:
    """Normalize a result-count argument into [MIN_RESULTS, MAX_RESULTS]."""
    if value is None or isinstance(value, bool):
        return default
    try:
        count = int(value)
    except OverflowError:
        return MAX_RESULTS if value > 0 else MIN_RESULTS
    except (TypeError, ValueError):
        return default
    return max(MIN_RESULTS, min(MAX_RESULTS, count))


def _as_id_list(value: Any) -> List[str]:
    if isinstance(value, str):
        return [v.strip() for v in value.split(",") if v.strip()]
    return [str(v) for v in value or []]


ToolHandler = Callable[[Dict[str, Any]], Awaitable[str]]


class ToolDispatcher:
    """Executes catalog tools against a mailbox and renders the result as text.

    ``execute`` always returns a string. Unknown tools, missing arguments,
    domain failures and mailbox transport errors all come back as text so the
    model can react to them.
    """

    def __init__(
        self,
        mailbox: MailboxService,
        catalog: Tuple[ToolDefinition, ...] = TOOL_CATALOG,
    ) -> None:
        self._mailbox = mailbox
        self._catalog = catalog
        self._definitions = {tool.name: tool for tool in catalog}
        self._handlers: Dict[str, ToolHandler] = {
            "search_emails": self._search_emails,
            "list_recent_emails": self._list_recent_emails,
            "get_email_details": self._get_email_details,
            "send_email": self._send_email,
            "mark_as_read": self._mark_as_read,
            "trash_email": self._trash_email,
            "create_label": self._create_label,
            "delete_label": self._delete_label,
            "get_labels": self._get_labels,
            "star_email": self._star_email,
            "unstar_email": self._unstar_email,
            "archive_email": self._archive_email,
            "batch_star_emails": self._batch_star_emails,
            "batch_apply_label": self._batch_apply_label,
            "find_marketing_emails": self._find_marketing_emails,
            "get_unsubscribe_info": self._get_unsubscribe_info,
        }

    @property
    def catalog(self) -> Tuple[ToolDefinition, ...]:
        return self._catalog

    async def execute(self, name: str, arguments: Mapping[str, Any] | None) -> str:
        """Run a tool by name.

        Args:
            name: Catalog tool name requested by the model.
            arguments: Decoded tool arguments (may be empty or None).

        Returns:
            str: Rendered result, or a failure line starting with the failure marker.
        """
        definition = self._definitions.get(name)
        handler = self._handlers.get(name)
        if definition is None or handler is None:
            logger.warning("Unknown tool requested: %s", name)
            return f"Unknown tool: {name}"

        args = dict(arguments or {})
        missing = [p for p in definition.required if args.get(p) in (None, "", [])]
        if missing:
            logger.info("Tool %s called without %s", name, ", ".join(missing))
            return f"{FAILURE_MARKER} Missing required argument(s) for {name}: {', '.join(missing)}"

        logger.info("Executing tool: %s", name)
        try:
            result = await handler(args)
        except MailboxError as e:
            logger.error("Tool %s failed: %s", name, e)
            return f"{FAILURE_MARKER} Error running {name}: {e}"
        except (TypeError, ValueError, KeyError) as e:
            logger.error("Tool %s got unusable arguments: %s", name, e)
            return f"{FAILURE_MARKER} Invalid arguments for {name}: {e}"
        except Exception as e:
            logger.exception("Unexpected error in tool %s: %s", name, e)
            return f"{FAILURE_MARKER} Error running {name}: {e}"
        logger.debug("Tool %s completed", name)
        return result

    async def _search_emails(self, args: Dict[str, Any]) -> str:
        emails = await self._mailbox.search(str(args["query"]), clamp_count(args.get("maxResults")))
        return format_email_list(emails)

    async def _list_recent_emails(self, args: Dict[str, Any]) -> str:
        emails = await self._mailbox.list_recent(clamp_count(args.get("count")))
        return format_email_list(emails)

    async def _get_email_details(self, args: Dict[str, Any]) -> str:
        message_id = str(args["messageId"])
        email = await self._mailbox.get_by_id(message_id)
        if email is None:
            return f"{FAILURE_MARKER} Email not found with ID: {message_id}"
        return format_email(email, include_body=True)

    async def _send_email(self, args: Dict[str, Any]) -> str:
        to = str(args["to"])
        result = await self._mailbox.send([to], str(args["subject"]), str(args["body"]))
        if result.success:
            return f"✅ Email sent successfully to {to}"
        return f"{FAILURE_MARKER} Failed to send email: {result.error or 'Unknown error'}"

    async def _mark_as_read(self, args: Dict[str, Any]) -> str:
        message_id = str(args["messageId"])
        if await self._mailbox.mark_read(message_id):
            return f"✅ Email marked as read: {message_id}"
        return f"{FAILURE_MARKER} Failed to mark email as read"

    async def _trash_email(self, args: Dict[str, Any]) -> str:
        message_id = str(args["messageId"])
        if await self._mailbox.trash(message_id):
            return f"🗑️ Email moved to trash: {message_id}"
        return f"{FAILURE_MARKER} Failed to trash email"

    async def _create_label(self, args: Dict[str, Any]) -> str:
        name = str(args["name"])
        label = await self._mailbox.create_label(name)
        if label is not None:
            return f'✅ Label created: "{name}" (ID: {label.id})'
        return f"{FAILURE_MARKER} Failed to create label"

    async def _delete_label(self, args: Dict[str, Any]) -> str:
        if await self._mailbox.delete_label(str(args["labelId"])):
            return "✅ Label deleted"
        return f"{FAILURE_MARKER} Failed to delete label"

    async def _get_labels(self, args: Dict[str, Any]) -> str:
        return format_labels(await self._mailbox.list_labels())

    async def _star_email(self, args: Dict[str, Any]) -> str:
        message_id = str(args["messageId"])
        if await self._mailbox.star(message_id):
            return f"⭐ Email starred: {message_id}"
        return f"{FAILURE_MARKER} Failed to star email"

    async def _unstar_email(self, args: Dict[str, Any]) -> str:
        message_id = str(args["messageId"])
        if await self._mailbox.unstar(message_id):
            return f"✅ Star removed from email: {message_id}"
        return f"{FAILURE_MARKER} Failed to unstar email"

    async def _archive_email(self, args: Dict[str, Any]) -> str:
        message_id = str(args["messageId"])
        if await self._mailbox.archive(message_id):
            return f"📁 Email archived: {message_id}"
        return f"{FAILURE_MARKER} Failed to archive email"

    async def _batch_star_emails(self, args: Dict[str, Any]) -> str:
        message_ids = _as_id_list(args["messageIds"])
        if await self._mailbox.batch_modify(message_ids, add_labels=["STARRED"]):
            return f"⭐ Starred {len(message_ids)} emails"
        return f"{FAILURE_MARKER} Failed to star emails"

    async def _batch_apply_label(self, args: Dict[str, Any]) -> str:
        message_ids = _as_id_list(args["messageIds"])
        label_id = str(args["labelId"])
        if await self._mailbox.batch_modify(message_ids, add_labels=[label_id]):
            return f"✅ Applied label to {len(message_ids)} emails"
        return f"{FAILURE_MARKER} Failed to apply label"

    async def _find_marketing_emails(self, args: Dict[str, Any]) -> str:
        max_results = clamp_count(args.get("maxResults"), default=DEFAULT_MARKETING_RESULTS)
        return format_marketing_emails(await self._mailbox.find_marketing(max_results))

    async def _get_unsubscribe_info(self, args: Dict[str, Any]) -> str:
        message_id = str(args["messageId"])
        info = await self._mailbox.get_unsubscribe_info(message_id)
        if info is None:
            return f"{FAILURE_MARKER} Could not get unsubscribe info for email: {message_id}"
        return format_unsubscribe_info(info)
