# tests/test_draw_flow.py
import pytest

from santa_room.core.errors import (
    ConstraintUnsatisfiable,
    InsufficientParticipants,
    NotAuthorized,
    PhaseViolation,
)
from santa_room.core.state_machine import RoomPhase
from santa_room.db import SessionLocal
from santa_room.models import Assignment

MOM = "device-mom"


def _family(coordinator):
    """Mom（管理者）+ Dad, Kid1, Kid2。全員それぞれの端末で名乗る"""
    room, mom = coordinator.create_room("Mom", MOM)
    members = {"Mom": (mom, MOM)}
    for name in ("Dad", "Kid1", "Kid2"):
        p = coordinator.add_participant(room.code, name, MOM)
        device = f"device-{name.lower()}"
        coordinator.claim(p.id, device)
        members[name] = (p, device)
    return room.code, members


def _assignments(code):
    with SessionLocal() as s:
        rows = s.query(Assignment).filter(Assignment.room_code == code).all()
        return [(a.giver_id, a.receiver_id) for a in rows]


def test_end_to_end_family_draw(coordinator):
    code, members = _family(coordinator)
    dad, mom = members["Dad"][0], members["Mom"][0]
    coordinator.add_exclusion(code, dad.id, mom.id, MOM)

    result = coordinator.start_draw(code, MOM)
    assert result.phase == "REVEAL"
    assert result.assignment_count == 4

    pairs = _assignments(code)
    ids = sorted(p.id for p, _ in members.values())
    assert sorted(g for g, _ in pairs) == ids
    assert sorted(r for _, r in pairs) == ids
    assert all(g != r for g, r in pairs)
    assert (dad.id, mom.id) not in pairs

    coordinator.reset(code, MOM)
    assert coordinator.room_phase(code) is RoomPhase.LOBBY
    assert _assignments(code) == []


def test_phase_and_receivers_move_together(coordinator):
    code, members = _family(coordinator)

    for p, device in members.values():
        assert coordinator.my_receiver(code, p.id, device) is None

    coordinator.start_draw(code, MOM)
    assert coordinator.room_phase(code) is RoomPhase.REVEAL

    receivers = set()
    for p, device in members.values():
        receiver = coordinator.my_receiver(code, p.id, device)
        assert receiver is not None
        assert receiver.id != p.id
        receivers.add(receiver.id)
    assert len(receivers) == 4

    coordinator.reset(code, MOM)
    assert coordinator.room_phase(code) is RoomPhase.LOBBY
    for p, device in members.values():
        assert coordinator.my_receiver(code, p.id, device) is None


def test_receiver_is_private_to_the_claiming_device(coordinator):
    code, members = _family(coordinator)
    coordinator.start_draw(code, MOM)

    kid1, _ = members["Kid1"]
    with pytest.raises(NotAuthorized):
        coordinator.my_receiver(code, kid1.id, "device-kid2")


def test_draw_needs_minimum_participants(coordinator):
    room, _ = coordinator.create_room("Mom", MOM)
    coordinator.add_participant(room.code, "Dad", MOM)

    with pytest.raises(InsufficientParticipants):
        coordinator.start_draw(room.code, MOM)
    assert coordinator.room_phase(room.code) is RoomPhase.LOBBY


def test_unsatisfiable_draw_changes_nothing(coordinator):
    code, members = _family(coordinator)
    mom = members["Mom"][0]
    # Mom には誰も贈れない
    for name in ("Dad", "Kid1", "Kid2"):
        coordinator.add_exclusion(code, members[name][0].id, mom.id, MOM)

    with pytest.raises(ConstraintUnsatisfiable):
        coordinator.start_draw(code, MOM)

    assert coordinator.room_phase(code) is RoomPhase.LOBBY
    assert _assignments(code) == []


def test_draw_twice_and_reset_in_lobby_are_rejected(coordinator):
    code, _ = _family(coordinator)

    with pytest.raises(PhaseViolation):
        coordinator.reset(code, MOM)

    coordinator.start_draw(code, MOM)
    with pytest.raises(PhaseViolation):
        coordinator.start_draw(code, MOM)
    assert len(_assignments(code)) == 4


def test_only_admin_draws_and_resets(coordinator):
    code, _ = _family(coordinator)

    with pytest.raises(NotAuthorized):
        coordinator.start_draw(code, "device-dad")
    coordinator.start_draw(code, MOM)
    with pytest.raises(NotAuthorized):
        coordinator.reset(code, "device-kid1")
    assert coordinator.room_phase(code) is RoomPhase.REVEAL


def test_redraw_after_reset_creates_a_fresh_batch(coordinator):
    code, _ = _family(coordinator)
    coordinator.start_draw(code, MOM)
    coordinator.reset(code, MOM)
    coordinator.start_draw(code, MOM)
    assert len(_assignments(code)) == 4


def test_changes_are_published_per_room(coordinator):
    events = []
    room, _ = coordinator.create_room("Mom", MOM)
    unsubscribe = coordinator.events.subscribe(room.code, events.append)
    try:
        coordinator.add_participant(room.code, "Dad", MOM)
        with pytest.raises(InsufficientParticipants):
            coordinator.start_draw(room.code, MOM)
    finally:
        unsubscribe()

    # 失敗した抽選は通知しない
    assert [e["reason"] for e in events] == ["participant_added"]
    assert events[0] == {"type": "room_changed", "code": room.code, "reason": "participant_added"}
