from datetime import datetime, timedelta

from portal_chat.client.reconciler import TEMP_ID_PREFIX, LocalMessage, MessageList, is_temp_id

T0 = datetime(2026, 10, 19, 9, 0, 0)


def row(message_id, content, sender_id="user-1", seconds=0, sender=None):
    return {
        "id": message_id,
        "session_id": "s-1",
        "sender_id": sender_id,
        "content": content,
        "created_at": (T0 + timedelta(seconds=seconds)).isoformat(),
        "sender": sender,
    }


def test_temp_ids_are_prefixed_and_unique():
    messages = MessageList()
    a = messages.add_optimistic("Hello", "user-1", "s-1")
    b = messages.add_optimistic("Hello", "user-1", "s-1")

    assert a.id.startswith(TEMP_ID_PREFIX)
    assert a.id != b.id
    assert is_temp_id(b.id)
    assert not is_temp_id("0b8e2d0c-6a5f-4a8e-9a0e-3c1c8f0b1a11")


def test_repeated_insert_events_render_once():
    messages = MessageList()
    event = row("m-1", "Hello")

    assert messages.apply_insert(event) is True
    assert messages.apply_insert(event) is False
    assert messages.apply_insert(dict(event)) is False

    assert messages.ids == ["m-1"]


def test_direct_response_replaces_temp_entry():
    messages = MessageList()
    temp = messages.add_optimistic("Hello", "user-1", "s-1", now=T0)

    resolved = messages.resolve(temp.id, row("m-1", "Hello", seconds=1))

    assert resolved.id == "m-1"
    assert messages.ids == ["m-1"]
    assert messages.temp_messages == []


def test_realtime_before_direct_response_converges():
    messages = MessageList()
    temp = messages.add_optimistic("Hello", "user-1", "s-1", now=T0)
    server_row = row("m-1", "Hello", seconds=1)

    messages.apply_insert(server_row)
    messages.resolve(temp.id, server_row)

    assert messages.ids == ["m-1"]


def test_direct_response_before_realtime_converges():
    messages = MessageList()
    temp = messages.add_optimistic("Hello", "user-1", "s-1", now=T0)
    server_row = row("m-1", "Hello", seconds=1)

    messages.resolve(temp.id, server_row)
    assert messages.apply_insert(server_row) is False

    assert messages.ids == ["m-1"]


def test_identical_messages_match_oldest_temp_first():
    messages = MessageList()
    first = messages.add_optimistic("ok", "user-1", "s-1", now=T0)
    second = messages.add_optimistic("ok", "user-1", "s-1", now=T0 + timedelta(seconds=1))

    messages.apply_insert(row("m-1", "ok", seconds=2))

    assert [m.id for m in messages.temp_messages] == [second.id]
    assert messages.find(first.id) is None

    messages.resolve(second.id, row("m-2", "ok", seconds=3))
    assert messages.ids == ["m-1", "m-2"]


def test_insert_from_other_sender_is_appended_not_matched():
    messages = MessageList()
    temp = messages.add_optimistic("ok", "user-1", "s-1", now=T0)

    messages.apply_insert(row("m-9", "ok", sender_id="admin-1", seconds=1))

    assert messages.find(temp.id) is not None
    assert len(messages) == 2


def test_rollback_removes_temp_entry():
    messages = MessageList()
    messages.apply_insert(row("m-1", "earlier"))
    temp = messages.add_optimistic("will fail", "user-1", "s-1")

    assert messages.rollback(temp.id) is True
    assert messages.rollback(temp.id) is False
    assert messages.ids == ["m-1"]


def test_messages_are_ordered_by_created_at():
    messages = MessageList()
    messages.apply_insert(row("m-3", "third", seconds=30))
    messages.apply_insert(row("m-1", "first", seconds=10))
    messages.apply_insert(row("m-2", "second", seconds=20))

    assert messages.ids == ["m-1", "m-2", "m-3"]


def test_resolved_entry_moves_to_server_timestamp_position():
    messages = MessageList()
    temp = messages.add_optimistic("late clock", "user-1", "s-1", now=T0 + timedelta(minutes=5))
    messages.apply_insert(row("m-2", "reply", sender_id="admin-1", seconds=60))

    messages.resolve(temp.id, row("m-1", "late clock", seconds=30))

    assert messages.ids == ["m-1", "m-2"]


def test_locally_attached_sender_profile_is_kept():
    messages = MessageList()
    profile = {"id": "user-1", "email": "taro@example.com"}
    temp = messages.add_optimistic("Hello", "user-1", "s-1", sender=profile)

    resolved = messages.resolve(temp.id, row("m-1", "Hello", sender=None))

    assert resolved.sender == profile


def test_update_replaces_by_server_id_only():
    messages = MessageList()
    temp = messages.add_optimistic("draft", "user-1", "s-1", now=T0)
    messages.apply_insert(row("m-1", "original", sender_id="system"))

    assert messages.apply_update(row("m-1", "edited", sender_id="system")) is True
    assert messages.apply_update(row("m-404", "draft")) is False

    assert messages.find("m-1").content == "edited"
    assert messages.find(temp.id) is not None


def test_pinned_messages_stay_first():
    welcome = LocalMessage(id="welcome-1", content="hi", sender_id="system", created_at=T0 + timedelta(days=1))
    messages = MessageList(pinned=[welcome])
    messages.apply_insert(row("m-1", "Hello"))

    assert messages.ids == ["welcome-1", "m-1"]

    messages.clear()
    assert messages.ids == ["welcome-1"]


def test_from_row_accepts_objects_and_aware_timestamps():
    class Row:
        id = "m-1"
        session_id = "s-1"
        sender_id = "user-1"
        content = "Hello"
        created_at = "2026-10-19T09:00:00Z"
        sender = None

    message = LocalMessage.from_row(Row())

    assert message.created_at == T0
    assert message.created_at.tzinfo is None


def test_segments_mark_links():
    message = LocalMessage(
        id="m-1",
        content="詳細は https://frogagent.com/faq をご覧ください",
        sender_id="admin-1",
        created_at=T0,
    )

    assert message.segments == [
        ("詳細は ", False),
        ("https://frogagent.com/faq", True),
        (" をご覧ください", False),
    ]
