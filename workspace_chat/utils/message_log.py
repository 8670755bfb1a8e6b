from datetime import datetime, timezone
from typing import Callable, Iterator, List, Optional, Tuple

from workspace_chat.models.chat_models import ChartHandle, Message, Role


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class MessageLog:
    """
    Append-only, ordered history of one chat session.

    Messages are created here so that timestamps never go backwards, even
    if the clock does.
    """

    def __init__(self, clock: Callable[[], datetime] = utc_now):
        self._clock = clock
        self._messages: List[Message] = []

    def append(
        self,
        role: Role,
        text: str,
        chart_ref: Optional[ChartHandle] = None,
        is_error: bool = False,
    ) -> Message:
        timestamp = self._clock()
        if self._messages and timestamp < self._messages[-1].timestamp:
            timestamp = self._messages[-1].timestamp

        message = Message(
            role=role,
            text=text,
            timestamp=timestamp,
            chart_ref=chart_ref,
            is_error=is_error,
        )
        self._messages.append(message)
        return message

    def last_bot_message(self) -> Optional[Message]:
        for message in reversed(self._messages):
            if message.role == Role.BOT and not message.is_error:
                return message
        return None

    @property
    def messages(self) -> Tuple[Message, ...]:
        return tuple(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(self.messages)
