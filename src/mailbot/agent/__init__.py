"""Agent package for the Slack Gmail assistant.

Exposes the model loop service together with the tool catalog and the
dispatcher that executes catalog tools against the mailbox.
"""

from .agent import MailAssistantService, get_date_context
from .tools import TOOL_CATALOG, ToolDefinition, ToolDispatcher, ToolParameter, get_tool_schemas

__all__ = [
    "MailAssistantService",
    "TOOL_CATALOG",
    "ToolDefinition",
    "ToolDispatcher",
    "ToolParameter",
    "get_date_context",
    "get_tool_schemas",
]
