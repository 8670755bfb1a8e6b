from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from workspace_chat.models.chat_models import Role
from workspace_chat.utils.message_log import MessageLog


def test_append_keeps_insertion_order() -> None:
    log = MessageLog()
    log.append(Role.USER, "hi")
    log.append(Role.BOT, "hello")

    assert [(m.role, m.text) for m in log] == [(Role.USER, "hi"), (Role.BOT, "hello")]
    assert len(log) == 2


def test_timestamps_never_go_backwards() -> None:
    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    ticks = iter([start, start - timedelta(seconds=5), start + timedelta(seconds=1)])
    log = MessageLog(clock=lambda: next(ticks))

    first = log.append(Role.USER, "a")
    second = log.append(Role.BOT, "b")
    third = log.append(Role.USER, "c")

    assert first.timestamp == second.timestamp == start
    assert third.timestamp > second.timestamp


def test_messages_are_immutable() -> None:
    log = MessageLog()
    message = log.append(Role.USER, "hi")

    with pytest.raises(ValidationError):
        message.text = "changed"
    assert isinstance(log.messages, tuple)


def test_last_bot_message_skips_errors() -> None:
    log = MessageLog()
    assert log.last_bot_message() is None

    log.append(Role.USER, "q")
    log.append(Role.BOT, "answer")
    log.append(Role.BOT, "something failed", is_error=True)

    assert log.last_bot_message().text == "answer"
