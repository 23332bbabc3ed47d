# fyzo_chat/tests/unit/test_event_dispatcher.py
import logging
from datetime import UTC, datetime

import pytest

from fyzo_chat.domain.events import MessageCreated, MessagesRead
from fyzo_chat.infrastructure.event_dispatcher import EventDispatcher


@pytest.mark.asyncio
async def test_event_dispatcher():
    dispatcher = EventDispatcher()

    events_received = []

    async def test_handler(event):
        events_received.append(event)

    dispatcher.register("MessageCreated", test_handler)

    event = MessageCreated(chat_id=1, actor_id=1, message={"id": 1, "content": "Test"})
    await dispatcher.dispatch(event)
    await dispatcher.dispatch(
        MessagesRead(chat_id=1, actor_id=2, message_ids=[1], read_at=datetime.now(UTC))
    )

    assert len(events_received) == 1
    assert isinstance(events_received[0], MessageCreated)


@pytest.mark.asyncio
async def test_failing_handler_does_not_stop_others(caplog):
    dispatcher = EventDispatcher(logging.getLogger("test_dispatcher"))
    events_received = []

    async def broken_handler(event):
        raise RuntimeError("boom")

    async def test_handler(event):
        events_received.append(event)

    dispatcher.register("MessageCreated", broken_handler)
    dispatcher.register("MessageCreated", test_handler)

    await dispatcher.dispatch(MessageCreated(chat_id=1, actor_id=1, message={"id": 1}))

    assert len(events_received) == 1
    assert "Handler for MessageCreated failed" in caplog.text
