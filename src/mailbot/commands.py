import logging
from typing import Awaitable, Callable, Dict

from .agent import MailAssistantService
from .models import InboundMessage
from .services.formatting import format_email, format_email_list
from .services.mailbox import MailboxService
from .services.memory_store import MemoryStore
from .services.session_registry import SessionRegistry
from .services.slack import ChatPlatform, ChatPlatformError

logger = logging.getLogger(__name__)

CLEAR_WORDS = frozenset({"clear", "reset", "start over"})
START_WORDS = frozenset({"start"})
STOP_WORDS = frozenset({"stop", "done", "end"})

MAX_DIRECT_RESULTS = 10
DEFAULT_DIRECT_RESULTS = 5

PROCESSING_TEXT = "🤔 Processing your request..."
CLEARED_TEXT = "🔄 Conversation cleared! Starting fresh."

USAGE_TEXT = (
    "📧 *Gmail Assistant* (with conversation memory!)\n\n"
    "Just type what you need in plain English!\n\n"
    "*Examples:*\n"
    "• `/gmail show me unread emails`\n"
    "• `/gmail emails from last week`\n"
    "• `/gmail find emails with attachments from John`\n"
    "• `/gmail send an email to bob@example.com about the meeting`\n"
    "• `/gmail star all emails from my boss`\n\n"
    "*Conversation Commands:*\n"
    "• `/gmail clear` - Reset conversation memory\n"
    "• `/gmail start` - Open a thread where you can chat without the command\n\n"
    "Type `/gmail-help` for all available commands."
)

SESSION_STARTED_TEXT = (
    "🧵 *Gmail Assistant session started* for <@{user_id}>\n"
    "Reply in this thread to talk to me without `/gmail`. "
    "Say `clear` to reset memory or `stop` to end the session. "
    "Sessions close after 30 minutes of inactivity."
)
SESSION_ENDED_TEXT = "👋 Session ended. Conversation memory cleared."

HELP_TEXT = """
*📧 Gmail Slack Bot - Full Feature List*

*🤖 Main Command:* `/gmail <anything>` - Ask in plain English!
💬 *Conversation memory:* I remember our chat for 30 mins.

*🧠 CONVERSATION FEATURES:*
• Multi-turn conversations - refer to previous results
• Say "unsubscribe from 1, 3, 5" after seeing a list
• `/gmail clear` - Reset conversation memory
• `/gmail start` - Start a thread session, then just reply in the thread
• Say `stop`, `done` or `end` in the thread to close it

*📬 EMAIL OPERATIONS:*
• List/search emails • Read email content
• Send new emails • Mark as read
• Star/unstar emails • Archive emails
• Trash emails • Batch star / batch label

*🏷️ LABELS:*
• List all labels • Create labels • Delete labels

*🔗 MARKETING:*
• Find marketing emails • Get unsubscribe links

*📋 Direct Commands:*
`/gmail-list` `/gmail-unread` `/gmail-search`
`/gmail-read` `/gmail-send` `/gmail-mark-read`
`/gmail-trash` `/gmail-help`
"""


def _summarize(text: str, limit: int = 50) -> str:
    return text[:limit] + ("..." if len(text) > limit else "")


def log_request(user_id: str, command: str, status: str, error: str | None = None) -> None:
    """Log a request lifecycle entry without message content beyond a short prefix."""
    if error:
        logger.warning(
            "request user=%s command=%r status=%s error=%s",
            user_id,
            _summarize(command),
            status,
            error,
        )
    else:
        logger.info("request user=%s command=%r status=%s", user_id, _summarize(command), status)


def _parse_count(text: str) -> int:
    """Read an optional leading count for list commands; fall back to the default."""
    try:
        count = int(text.strip()) if text.strip() else DEFAULT_DIRECT_RESULTS
    except ValueError:
        count = DEFAULT_DIRECT_RESULTS
    return max(1, min(count, MAX_DIRECT_RESULTS))


class ChatRouter:
    """Routes slash commands and thread messages to sessions, memory and the assistant."""

    def __init__(
        self,
        assistant: MailAssistantService,
        memory: MemoryStore,
        sessions: SessionRegistry,
        mailbox: MailboxService,
        chat: ChatPlatform,
    ) -> None:
        self._assistant = assistant
        self._memory = memory
        self._sessions = sessions
        self._mailbox = mailbox
        self._chat = chat
        self._direct: Dict[str, Callable[[InboundMessage], Awaitable[str]]] = {
            "/gmail-list": self._cmd_list,
            "/gmail-unread": self._cmd_unread,
            "/gmail-search": self._cmd_search,
            "/gmail-read": self._cmd_read,
            "/gmail-send": self._cmd_send,
            "/gmail-mark-read": self._cmd_mark_read,
            "/gmail-trash": self._cmd_trash,
            "/gmail-help": self._cmd_help,
        }

    async def close(self) -> None:
        """Close the HTTP clients held by the mailbox and chat collaborators."""
        for client in (self._mailbox, self._chat):
            close = getattr(client, "close", None)
            if close is not None:
                await close()

    @property
    def commands(self) -> frozenset:
        return frozenset({"/gmail", *self._direct})

    async def handle_command(self, command: str, message: InboundMessage) -> None:
        """Handle one slash command end to end, replying through its response_url."""
        if command == "/gmail":
            await self.handle_gmail(message)
            return

        handler = self._direct.get(command)
        if handler is None:
            logger.warning("Unsupported command %s from %s", command, message.user_id)
            await self._reply(message, f"❌ Unknown command: {command}")
            return

        try:
            text = await handler(message)
        except Exception as e:
            logger.exception("Error handling %s: %s", command, e)
            text = f"❌ Error: {e}"
        await self._reply(message, text)

    async def handle_gmail(self, message: InboundMessage) -> None:
        """The natural-language `/gmail` command."""
        request = message.text.strip()
        lowered = request.lower()

        if lowered in CLEAR_WORDS:
            self._memory.clear(message.user_id)
            await self._reply(message, CLEARED_TEXT)
            return

        if not request:
            await self._reply(message, USAGE_TEXT)
            return

        if lowered in START_WORDS:
            try:
                await self.start_session(message)
            except ChatPlatformError as e:
                logger.error("Could not start session for %s: %s", message.user_id, e)
                await self._reply(message, f"❌ Error: {e}")
            return

        await self._reply(message, PROCESSING_TEXT)
        log_request(message.user_id, request, "start")
        try:
            result = await self._assistant.process(request, message.user_id)
        except Exception as e:
            log_request(message.user_id, request, "error", str(e))
            await self._reply(message, f"> _{request}_\n\n❌ Error: {e}", replace_original=True)
            return
        log_request(message.user_id, request, "success")
        await self._reply(
            message,
            f"> _{request}_\n\n🤖 *Gmail Assistant*\n\n{result}",
            replace_original=True,
        )

    async def start_session(self, message: InboundMessage) -> None:
        """Post a thread root in the channel and bind a session to it."""
        ts = await self._chat.post_message(
            message.channel, SESSION_STARTED_TEXT.format(user_id=message.user_id)
        )
        self._sessions.create(message.user_id, message.channel, ts)
        await self._reply(message, "🧵 Session started! Reply in the new thread to chat with me.")

    async def handle_thread_message(self, message: InboundMessage) -> bool:
        """Handle a message posted in a thread.

        Args:
            message: Inbound message; thread_id must be the thread root ts.

        Returns:
            bool: True if the message belonged to an active session and was handled.
        """
        if not message.thread_id or not self._sessions.is_active(message.channel, message.thread_id):
            return False

        session = self._sessions.get(message.channel, message.thread_id)
        if session is None or session.user_id != message.user_id:
            return False

        request = message.text.strip()
        if not request:
            return True

        try:
            await self._handle_thread_request(message, request)
        except ChatPlatformError as e:
            logger.error("Could not post to thread %s in %s: %s", message.thread_id, message.channel, e)
        return True

    async def _handle_thread_request(self, message: InboundMessage, request: str) -> None:
        lowered = request.lower()
        if lowered in STOP_WORDS:
            self._sessions.end(message.channel, message.thread_id)
            await self._chat.post_message(message.channel, SESSION_ENDED_TEXT, message.thread_id)
            return

        if lowered in CLEAR_WORDS:
            self._memory.clear(message.user_id)
            await self._chat.post_message(message.channel, CLEARED_TEXT, message.thread_id)
            return

        placeholder_ts = await self._chat.post_message(
            message.channel, PROCESSING_TEXT, message.thread_id
        )
        log_request(message.user_id, request, "start")
        try:
            result = await self._assistant.process(request, message.user_id)
        except Exception as e:
            log_request(message.user_id, request, "error", str(e))
            await self._chat.update_message(message.channel, placeholder_ts, f"❌ Error: {e}")
            return
        log_request(message.user_id, request, "success")
        await self._chat.update_message(message.channel, placeholder_ts, result)

    async def _reply(self, message: InboundMessage, text: str, replace_original: bool = False) -> None:
        if not message.response_url:
            logger.warning("No response_url for reply to %s; dropping message", message.user_id)
            return
        await self._chat.respond(message.response_url, text, replace_original=replace_original)

    async def _cmd_list(self, message: InboundMessage) -> str:
        emails = await self._mailbox.list_recent(_parse_count(message.text))
        return f"📬 *Recent Emails ({len(emails)})*\n\n{format_email_list(emails)}"

    async def _cmd_unread(self, message: InboundMessage) -> str:
        emails = await self._mailbox.search("is:unread", _parse_count(message.text))
        return f"📬 *Unread Emails ({len(emails)})*\n\n{format_email_list(emails)}"

    async def _cmd_search(self, message: InboundMessage) -> str:
        query = message.text.strip()
        if not query:
            return "❌ Please provide a search query. Example: `/gmail-search from:someone@example.com`"
        emails = await self._mailbox.search(query, DEFAULT_DIRECT_RESULTS)
        return f'🔍 *Search Results for "{query}" ({len(emails)})*\n\n{format_email_list(emails)}'

    async def _cmd_read(self, message: InboundMessage) -> str:
        message_id = message.text.strip()
        if not message_id:
            return "❌ Please provide an email ID. Example: `/gmail-read 19abc123def456`"
        email = await self._mailbox.get_by_id(message_id)
        if email is None:
            return f"❌ Email not found with ID: {message_id}"
        return f"📧 *Email Details*\n\n{format_email(email, include_body=True)}"

    async def _cmd_send(self, message: InboundMessage) -> str:
        parts = [p.strip() for p in message.text.split("|")]
        if len(parts) < 3:
            return "❌ Invalid format. Use: `/gmail-send to@email.com | Subject | Body text`"
        to, subject, *body_parts = parts
        body = "|".join(body_parts)
        result = await self._mailbox.send([to], subject, body)
        if result.success:
            return f"✅ Email sent successfully!\n*To:* {to}\n*Subject:* {subject}"
        return f"❌ Failed to send email: {result.error or 'Unknown error'}"

    async def _cmd_mark_read(self, message: InboundMessage) -> str:
        message_id = message.text.strip()
        if not message_id:
            return "❌ Please provide an email ID. Example: `/gmail-mark-read 19abc123def456`"
        if await self._mailbox.mark_read(message_id):
            return f"✅ Email marked as read: {message_id}"
        return "❌ Failed to mark email as read"

    async def _cmd_trash(self, message: InboundMessage) -> str:
        message_id = message.text.strip()
        if not message_id:
            return "❌ Please provide an email ID. Example: `/gmail-trash 19abc123def456`"
        if await self._mailbox.trash(message_id):
            return f"🗑️ Email moved to trash: {message_id}"
        return "❌ Failed to trash email"

    async def _cmd_help(self, message: InboundMessage) -> str:
        return HELP_TEXT
