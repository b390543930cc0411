from __future__ import annotations

import pytest

from voicechat.runtime.errors import AlreadyMember, InactiveRoom, InvalidRequest, NotFound, NotMember, RoomFull
from voicechat.runtime.sessions import SessionRegistry


def _room_with_host(reg: SessionRegistry, name: str = "Standup"):
    host = reg.create_user("Alice")
    return host, reg.create_room(host, name)


def test_create_room_puts_host_in_participants() -> None:
    reg = SessionRegistry()
    host, room_id = _room_with_host(reg)

    info = reg.get_room_info(room_id)
    assert info.participant_ids == (host,)
    assert info.participant_names == ("Alice",)
    assert info.host_name == "Alice"
    assert info.active is True
    assert info.message_count == 0
    assert reg.get_user(host).rooms == [room_id]


def test_create_room_requires_known_host() -> None:
    reg = SessionRegistry()
    with pytest.raises(NotFound):
        reg.create_room("user_missing", "Standup")


@pytest.mark.parametrize("name", ["", "   ", "x" * 33])
def test_create_room_rejects_bad_names(name: str) -> None:
    reg = SessionRegistry()
    host = reg.create_user("Alice")
    with pytest.raises(InvalidRequest):
        reg.create_room(host, name)


def test_room_name_at_limit_is_accepted() -> None:
    reg = SessionRegistry()
    host = reg.create_user("Alice")
    room_id = reg.create_room(host, "r" * 32)
    assert reg.get_room_info(room_id).name == "r" * 32


def test_join_errors() -> None:
    reg = SessionRegistry()
    host, room_id = _room_with_host(reg)

    with pytest.raises(NotFound):
        reg.join_room(host, "room_missing")
    with pytest.raises(NotFound):
        reg.join_room("user_missing", room_id)
    with pytest.raises(AlreadyMember):
        reg.join_room(host, room_id)


def test_eleventh_join_fails_and_membership_is_unchanged() -> None:
    reg = SessionRegistry()
    _, room_id = _room_with_host(reg)
    for i in range(9):
        reg.join_room(reg.create_user(f"u{i}"), room_id)

    before = reg.get_room_info(room_id)
    assert before.participant_count == 10

    late = reg.create_user("late")
    with pytest.raises(RoomFull):
        reg.join_room(late, room_id)

    after = reg.get_room_info(room_id)
    assert after.participant_ids == before.participant_ids
    assert reg.get_user(late).rooms == []


def test_last_leave_deactivates_room() -> None:
    reg = SessionRegistry()
    host, room_id = _room_with_host(reg)
    bob = reg.create_user("Bob")
    reg.join_room(bob, room_id)

    reg.leave_room(host, room_id)
    assert reg.get_room_info(room_id).active is True
    reg.leave_room(bob, room_id)

    info = reg.get_room_info(room_id)
    assert info.active is False
    assert info.participant_count == 0
    assert reg.get_user(bob).rooms == []

    with pytest.raises(InactiveRoom):
        reg.join_room(host, room_id)


def test_leave_requires_membership() -> None:
    reg = SessionRegistry()
    _, room_id = _room_with_host(reg)
    outsider = reg.create_user("Eve")
    with pytest.raises(NotMember):
        reg.leave_room(outsider, room_id)


def test_get_user_returns_a_copy() -> None:
    reg = SessionRegistry()
    host, room_id = _room_with_host(reg)
    u = reg.get_user(host)
    u.rooms.clear()
    assert reg.get_user(host).rooms == [room_id]


def test_send_guard_without_commit_changes_nothing() -> None:
    reg = SessionRegistry()
    host, room_id = _room_with_host(reg)

    with pytest.raises(RuntimeError):
        with reg.send_guard(host, room_id):
            raise RuntimeError("write failed")

    assert reg.get_room_info(room_id).message_count == 0
    assert reg.get_user(host).messages_sent == 0

    with reg.send_guard(host, room_id) as ticket:
        assert ticket.commit() == 1
        with pytest.raises(RuntimeError):
            ticket.commit()
    assert reg.get_user(host).messages_sent == 1


def test_list_rooms_includes_inactive() -> None:
    reg = SessionRegistry()
    host, a = _room_with_host(reg, "a")
    b = reg.create_room(host, "b")
    reg.leave_room(host, a)

    rooms = {r.room_id: r for r in reg.list_rooms()}
    assert set(rooms) == {a, b}
    assert rooms[a].active is False
    assert rooms[b].active is True


def test_inactive_check_comes_before_membership_and_capacity() -> None:
    reg = SessionRegistry(max_participants=2)
    host, room_id = _room_with_host(reg)
    bob = reg.create_user("Bob")
    reg.join_room(bob, room_id)
    outsider = reg.create_user("Eve")

    # full and listing both members, but flagged inactive; public calls never
    # produce this state, so set the flag on the registry's own record
    reg._rooms[room_id].active = False

    with pytest.raises(InactiveRoom):
        reg.join_room(host, room_id)
    with pytest.raises(InactiveRoom):
        reg.join_room(outsider, room_id)
    assert reg.get_room_info(room_id).participant_ids == (host, bob)


def test_missing_room_is_reported_before_missing_user() -> None:
    reg = SessionRegistry()
    with pytest.raises(NotFound) as ei:
        reg.join_room("user_missing", "room_missing")
    assert ei.value.reason == "room_not_found"


def test_check_sender_validates_without_side_effects() -> None:
    reg = SessionRegistry()
    host, room_id = _room_with_host(reg)
    eve = reg.create_user("Eve")

    reg.check_sender(host, room_id)
    with pytest.raises(NotMember):
        reg.check_sender(eve, room_id)
    assert reg.get_room_info(room_id).message_count == 0
