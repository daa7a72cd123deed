import json
import logging
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, List

from openai import AsyncOpenAI

from ..services.memory_store import MemoryStore
from ..settings import Settings, get_settings
from .tools import ToolDispatcher, get_tool_schemas

logger = logging.getLogger(__name__)

EMPTY_RESPONSE_FALLBACK = "I processed your request but have no response to show."
ITERATION_LIMIT_FALLBACK = (
    "I wasn't able to complete that request. Please try again with a more specific request."
)


def _subtract_month(day: date) -> date:
    if day.month == 1:
        year, month = day.year - 1, 12
    else:
        year, month = day.year, day.month - 1
    # Clamp e.g. March 31 to the last day of February.
    for candidate in (day.day, 30, 29, 28):
        try:
            return day.replace(year=year, month=month, day=candidate)
        except ValueError:
            continue
    raise ValueError(f"Cannot compute previous month for {day}")


def get_date_context(now: datetime | None = None) -> str:
    """Describe today, a week ago and a month ago in Gmail's YYYY/MM/DD format."""
    today = (now or datetime.now()).date()
    last_week = today - timedelta(days=7)
    last_month = _subtract_month(today)
    fmt = "%Y/%m/%d"
    return (
        f"Today is {today.strftime(fmt)}. "
        f"Last week started {last_week.strftime(fmt)}. "
        f"Last month started {last_month.strftime(fmt)}."
    )


def _text_segments(content: Any) -> List[str]:
    """Collect text from a message content that is either a string or a list of parts."""
    if content is None:
        return []
    if isinstance(content, str):
        return [content] if content else []
    segments: List[str] = []
    for part in content:
        text = part.get("text") if isinstance(part, dict) else getattr(part, "text", None)
        if text:
            segments.append(text)
    return segments


class MailAssistantService:
    """Runs the tool-using model loop for one user turn at a time.

    Conversation history comes from the shared MemoryStore. Only the user's
    text and the final answer are persisted; tool calls and tool results live
    in a per-turn working list.
    """

    def __init__(
        self,
        memory: MemoryStore,
        dispatcher: ToolDispatcher,
        settings: Settings | None = None,
        client: AsyncOpenAI | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._memory = memory
        self._dispatcher = dispatcher
        self._settings = settings or get_settings()
        self._client = client
        self._clock = clock
        self._tools = get_tool_schemas(dispatcher.catalog)

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self._settings.openai_api_key,
                base_url=self._settings.openai_base_url,
            )
        return self._client

    def build_system_prompt(self) -> str:
        return self._settings.agent_system_prompt.replace(
            "{date_context}", get_date_context(self._clock())
        )

    async def _call_model(self, system_prompt: str, messages: List[Dict[str, Any]]) -> Any:
        client = self._get_client()
        return await client.chat.completions.create(
            model=self._settings.model,
            messages=[{"role": "system", "content": system_prompt}, *messages],
            tools=self._tools,
            tool_choice="auto",
            max_tokens=self._settings.max_tokens,
            temperature=self._settings.temperature,
        )

    async def _run_tool_calls(self, tool_calls: List[Any]) -> List[Dict[str, Any]]:
        """Execute the requested tools in order and return the tool result messages."""
        results: List[Dict[str, Any]] = []
        for tc in tool_calls:
            name = tc.function.name
            try:
                args = json.loads(tc.function.arguments) if tc.function.arguments else {}
            except json.JSONDecodeError as e:
                logger.error("Invalid tool arguments for %s: %s", name, e)
                content = f"❌ Invalid arguments for {name}: {e}"
            else:
                if not isinstance(args, dict):
                    content = f"❌ Invalid arguments for {name}: expected an object"
                else:
                    content = await self._dispatcher.execute(name, args)
            results.append({"role": "tool", "tool_call_id": tc.id, "content": content})
        return results

    async def process(self, user_message: str, user_id: str = "default") -> str:
        """Answer one natural-language request for a user.

        Args:
            user_message: Text the user typed.
            user_id: Chat platform user id; selects the conversation memory.

        Returns:
            str: The model's final answer.

        Raises:
            openai.OpenAIError: When the model call fails. Nothing is retried.
        """
        state = self._memory.get_or_create(user_id)
        self._memory.append_turn(state, "user", user_message)

        system_prompt = self.build_system_prompt()
        messages: List[Dict[str, Any]] = [dict(m) for m in state.history]

        final_response: str | None = None
        for iteration in range(1, self._settings.max_iterations + 1):
            response = await self._call_model(system_prompt, messages)
            message = response.choices[0].message
            tool_calls = list(message.tool_calls or [])

            if not tool_calls:
                final_response = "\n".join(_text_segments(message.content)) or EMPTY_RESPONSE_FALLBACK
                break

            logger.info(
                "User %s round %d: tools requested: %s",
                user_id,
                iteration,
                ", ".join(tc.function.name for tc in tool_calls),
            )
            messages.append(
                {
                    "role": "assistant",
                    "content": message.content,
                    "tool_calls": [
                        {
                            "id": tc.id,
                            "type": "function",
                            "function": {
                                "name": tc.function.name,
                                "arguments": tc.function.arguments or "",
                            },
                        }
                        for tc in tool_calls
                    ],
                }
            )
            messages.extend(await self._run_tool_calls(tool_calls))

        if final_response is None:
            logger.warning(
                "User %s: no final answer after %d model calls",
                user_id,
                self._settings.max_iterations,
            )
            final_response = ITERATION_LIMIT_FALLBACK

        self._memory.append_turn(state, "assistant", final_response)
        return final_response
