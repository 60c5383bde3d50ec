from __future__ import annotations

import logging

import pytest

from booking_sync.application.exceptions import GenericError, NetworkError, RateLimitedError
from booking_sync.domain.value_objects.enums import EventKind, MessageType
from tests.conftest import TOKEN, make_message


def _total_handlers(dispatcher) -> int:
    return sum(dispatcher.handler_count(kind) for kind in EventKind)


def _wire_message(message_id: str, booking_id: str, content: str = "hi") -> dict:
    return {
        "id": message_id,
        "bookingId": booking_id,
        "senderId": "customer-1",
        "content": content,
        "messageType": "text",
        "createdAt": "2024-05-01T10:00:00Z",
    }


@pytest.mark.asyncio
async def test_switching_bookings_does_not_leak(connection, transport, session):
    await connection.start(TOKEN)

    await session.activate("b1")
    transport.deliver("new-message", _wire_message("m1", "b1"))
    transport.deliver("user-typing", {"bookingId": "b1", "isTyping": True})
    assert [m.id for m in session.messages] == ["m1"]

    await session.activate("b2")
    transport.deliver("new-message", _wire_message("m2", "b1"))
    transport.deliver("booking-status-changed", {"bookingId": "b1", "status": "cancelled"})
    transport.deliver("payment-confirmed", {"bookingId": "b1"})

    assert session.booking_id == "b2"
    assert session.messages == ()
    assert session.is_counterpart_typing is False
    assert session.snapshot.booking_id == "b2"
    assert session.snapshot.status is None
    assert transport.leaves() == ["b1"]
    assert transport.joins() == ["b1", "b2"]


@pytest.mark.asyncio
async def test_handlers_are_not_duplicated_across_switches(connection, transport, dispatcher, session):
    await connection.start(TOKEN)
    await session.activate("b1")
    count = _total_handlers(dispatcher)

    await session.activate("b2")
    await session.activate("b1")

    assert _total_handlers(dispatcher) == count


@pytest.mark.asyncio
async def test_duplicate_message_delivery_is_stored_once(connection, transport, session):
    changes = []
    session._on_change = lambda: changes.append(1)
    await connection.start(TOKEN)
    await session.activate("b1")

    transport.deliver("new-message", _wire_message("m1", "b1"))
    transport.deliver("new-message", _wire_message("m1", "b1", content="again"))

    assert len(session.messages) == 1
    assert session.messages[0].content == "hi"
    assert len(changes) == 1


@pytest.mark.asyncio
async def test_status_events_update_snapshot(connection, transport, session):
    await connection.start(TOKEN)
    await session.activate("b1")

    transport.deliver("booking-status-changed", {"bookingId": "b1", "status": "on_the_way"})

    assert session.snapshot.status == "on_the_way"


@pytest.mark.asyncio
async def test_join_status_seeds_snapshot(connection, transport, session):
    transport.acks["join-booking"] = {"success": True, "status": "paid"}
    await connection.start(TOKEN)

    await session.activate("b1")

    assert session.snapshot.status == "paid"


@pytest.mark.asyncio
async def test_deactivate_leaves_and_clears(connection, transport, session):
    await connection.start(TOKEN)
    await session.activate("b1")
    transport.deliver("new-message", _wire_message("m1", "b1"))

    await session.deactivate()

    assert session.booking_id is None
    assert session.messages == ()
    assert session.snapshot is None
    assert transport.leaves() == ["b1"]


@pytest.mark.asyncio
async def test_watching_scope(connection, transport, session):
    await connection.start(TOKEN)

    async with session.watching("b1") as watched:
        assert watched.booking_id == "b1"

    assert session.booking_id is None
    assert transport.leaves() == ["b1"]


@pytest.mark.asyncio
async def test_load_history_keeps_live_messages(connection, transport, session, api):
    api.history["b1"] = [make_message(message_id="h1"), make_message(message_id="h2")]
    await connection.start(TOKEN)
    await session.activate("b1")
    transport.deliver("new-message", _wire_message("live", "b1"))

    await session.load_history()

    assert [m.id for m in session.messages] == ["h1", "h2", "live"]


@pytest.mark.asyncio
async def test_load_booking_seeds_details(session, api):
    api.bookings["b1"] = {"status": "waiting_quote", "address": "12 Main St"}
    await session.activate("b1")

    await session.load_booking()

    assert session.snapshot.status == "waiting_quote"
    assert session.snapshot.get("address") == "12 Main St"


@pytest.mark.asyncio
async def test_send_message_over_socket(connection, transport, session):
    transport.acks["send-message"] = {"success": True, "message": _wire_message("m9", "b1", "On my way")}
    await connection.start(TOKEN)
    await session.activate("b1")

    message = await session.send_message("On my way")

    assert message.id == "m9"
    assert transport.calls[-1] == (
        "send-message", {"bookingId": "b1", "content": "On my way", "messageType": "text"},
    )
    assert [m.id for m in session.messages] == ["m9"]

    transport.deliver("new-message", _wire_message("m9", "b1", "On my way"))
    assert len(session.messages) == 1


@pytest.mark.asyncio
async def test_send_message_negative_ack_raises(connection, transport, session):
    transport.acks["send-message"] = {"success": False, "code": "RATE_LIMITED", "retryAfter": 10}
    await connection.start(TOKEN)
    await session.activate("b1")

    with pytest.raises(RateLimitedError) as exc_info:
        await session.send_message("hi")

    assert exc_info.value.retry_after == 10
    assert session.messages == ()


@pytest.mark.asyncio
async def test_send_message_timeout_raises_network_error(connection, transport, session):
    transport.acks["send-message"] = NetworkError("Request timed out")
    await connection.start(TOKEN)
    await session.activate("b1")

    with pytest.raises(NetworkError):
        await session.send_message("hi")


@pytest.mark.asyncio
async def test_send_message_falls_back_to_rest(transport, session, api):
    await session.activate("b1")

    message = await session.send_message("Running late", MessageType.TEXT)

    assert api.posted == [("b1", "Running late", "text")]
    assert transport.calls == []
    assert session.messages == (message,)


@pytest.mark.asyncio
async def test_send_without_active_booking_raises(session):
    with pytest.raises(GenericError):
        await session.send_message("hi")


@pytest.mark.asyncio
async def test_send_message_nowait_logs_failure(session, api, caplog):
    api.fail_with = NetworkError("offline")
    await session.activate("b1")

    with caplog.at_level(logging.WARNING):
        session.send_message_nowait("hi")
        await session.drain()

    assert "Failed to send message: offline" in caplog.text
    assert session.messages == ()


@pytest.mark.asyncio
async def test_send_image_uses_upload(session, api):
    await session.activate("b1")

    message = await session.send_image("photo.png", b"\x89PNG")

    assert message.type is MessageType.IMAGE
    assert api.uploads == [("b1", "photo.png", b"\x89PNG")]
    assert session.messages == (message,)


@pytest.mark.asyncio
async def test_typing_only_sent_when_connected(connection, transport, session):
    await session.activate("b1")
    await session.set_typing(True)
    assert transport.emitted == []

    await connection.start(TOKEN)
    await session.set_typing(True)

    assert transport.emitted == [("typing", {"bookingId": "b1", "isTyping": True})]


@pytest.mark.asyncio
async def test_counterpart_typing_tracks_active_booking(connection, transport, session):
    await connection.start(TOKEN)
    await session.activate("b1")

    transport.deliver("customer-typing", {"bookingId": "b1", "isTyping": True})
    assert session.is_counterpart_typing is True

    transport.deliver("user-typing", {"bookingId": "b7", "isTyping": False})
    assert session.is_counterpart_typing is True

    transport.deliver("user-typing", {"bookingId": "b1", "isTyping": False})
    assert session.is_counterpart_typing is False


@pytest.mark.asyncio
async def test_mark_read_over_socket(connection, transport, session):
    await connection.start(TOKEN)
    await session.activate("b1")
    transport.deliver("new-message", _wire_message("m1", "b1"))

    await session.mark_read("m1")

    assert transport.calls[-1] == ("mark-read", {"bookingId": "b1", "messageId": "m1"})
    assert session.messages[0].is_read is True


@pytest.mark.asyncio
async def test_mark_read_falls_back_to_rest(session, api):
    await session.activate("b1")

    await session.mark_read("m1")

    assert api.read_marks == ["b1"]


@pytest.mark.asyncio
async def test_message_read_event_marks_message(connection, transport, session):
    await connection.start(TOKEN)
    await session.activate("b1")
    transport.deliver("new-message", _wire_message("m1", "b1"))
    transport.deliver("new-message", _wire_message("m2", "b1"))

    transport.deliver("message-read", {"bookingId": "b1", "messageId": "m2"})

    assert [m.is_read for m in session.messages] == [False, True]


@pytest.mark.asyncio
async def test_mark_read_nowait_swallows_failure(connection, transport, session, caplog):
    transport.acks["mark-read"] = {"success": False, "code": "NOT_PARTICIPANT"}
    await connection.start(TOKEN)
    await session.activate("b1")

    with caplog.at_level(logging.WARNING):
        task = session.mark_read_nowait("m1")
        await task

    assert "Failed to mark message read: NOT_PARTICIPANT" in caplog.text


@pytest.mark.asyncio
async def test_reactivating_same_booking_starts_clean(connection, transport, session):
    await connection.start(TOKEN)
    await session.activate("b1")
    transport.deliver("quote-timeout-warning", {"bookingId": "b1", "secondsRemaining": 10})
    assert session.snapshot.get("timeoutWarning") is True

    await session.deactivate()
    await session.activate("b1")

    assert session.snapshot.booking_id == "b1"
    assert session.snapshot.fields == {}


@pytest.mark.asyncio
async def test_unknown_message_type_is_shown_as_text(connection, transport, session):
    await connection.start(TOKEN)
    await session.activate("b1")

    transport.deliver("new-message", {**_wire_message("m1", "b1", "Booking updated"), "messageType": "system"})

    assert [m.id for m in session.messages] == ["m1"]
    assert session.messages[0].type is MessageType.TEXT


@pytest.mark.asyncio
async def test_unreadable_ack_body_is_not_a_send_failure(connection, transport, session):
    transport.acks["send-message"] = {"success": True, "message": {"id": "m1", "createdAt": "not a date"}}
    await connection.start(TOKEN)
    await session.activate("b1")

    message = await session.send_message("hi")

    assert message is None
    assert session.messages == ()

    transport.deliver("new-message", _wire_message("m1", "b1"))
    assert [m.id for m in session.messages] == ["m1"]
