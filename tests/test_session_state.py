import pytest

from practice_exam_cbt.models.exam_model import AnswerSlot, ExamRecord
from practice_exam_cbt.models.session_state import SessionState, SlotState, elapsed_seconds
from practice_exam_cbt.services.errors import InvariantViolation


def _state(n=4, remaining=3600):
    exam = ExamRecord(id="e", user_id="u", time_limit_minutes=60, total_questions=n)
    slots = [
        AnswerSlot(id=f"s{i}", exam_id="e", question_id=f"q{i}", question_order=i)
        for i in range(1, n + 1)
    ]
    return SessionState(exam=exam, slots=slots, time_remaining=remaining, question_started_at=0.0)


def test_slot_states_precedence():
    state = _state()
    state.slots[1].user_answer = "A"
    state.slots[1].is_flagged = True
    state.slots[2].is_flagged = True
    assert state.slot_states() == [
        SlotState.current,
        SlotState.answered,
        SlotState.flagged,
        SlotState.unanswered,
    ]


@pytest.mark.parametrize("remaining,display,low", [
    (3600, "60:00", False),
    (300, "05:00", False),
    (299, "04:59", True),
    (0, "00:00", True),
])
def test_remaining_display_and_low_time(remaining, display, low):
    state = _state(remaining=remaining)
    assert state.remaining_display == display
    assert state.is_low_time is low


def test_accumulate_time_targets_current_slot_and_resets_start():
    state = _state()
    assert state.accumulate_time(12.4) == 12
    assert state.slots[0].time_spent_seconds == 12
    assert state.question_started_at == 12.4
    state.move_to(2)
    state.accumulate_time(20.0)
    assert state.slots[2].time_spent_seconds == 8
    assert state.slots[0].time_spent_seconds == 12


def test_elapsed_seconds_rounds_half_up_and_never_negative():
    assert elapsed_seconds(0.0, 2.5) == 3
    assert elapsed_seconds(0.0, 2.49) == 2
    assert elapsed_seconds(5.0, 4.0) == 0


def test_move_to_out_of_range():
    state = _state(n=2)
    with pytest.raises(InvariantViolation):
        state.move_to(2)
    with pytest.raises(InvariantViolation):
        state.move_to(-1)


def test_finished_state_is_read_only():
    state = _state()
    state.is_finished = True
    with pytest.raises(InvariantViolation):
        state.set_answer("A")
    with pytest.raises(InvariantViolation):
        state.toggle_flag()
    with pytest.raises(InvariantViolation):
        state.accumulate_time(1.0)


def test_unanswered_count():
    state = _state(n=3)
    state.set_answer("B")
    assert state.unanswered_count == 2


def test_finalizing_state_blocks_user_changes_but_not_time():
    state = _state()
    state.is_finalizing = True
    with pytest.raises(InvariantViolation):
        state.set_answer("A")
    with pytest.raises(InvariantViolation):
        state.move_to(1)
    assert state.accumulate_time(state.question_started_at + 3) == 3
