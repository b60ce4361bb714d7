import asyncio

import pytest

from examsim.core.errors import InvalidOption, InvalidTransition
from examsim.schemas.exam import SessionPhase
from examsim.services.exam_session import ExamSession


def _session(make_questions, topic, n=3, budget=3, **kw):
    return ExamSession(questions=make_questions(n, correct=1), topic=topic, budget=lambda t, i: budget, **kw)


def test_initial_state(make_questions, topic):
    s = ExamSession(questions=make_questions(2), topic=topic)
    assert s.phase is SessionPhase.in_progress
    assert s.current_index == 0
    assert s.time_left == 45


def test_needs_questions(topic):
    with pytest.raises(ValueError):
        ExamSession(questions=[], topic=topic)


def test_tick_counts_down_and_advances(make_questions, topic):
    s = _session(make_questions, topic, budget=2)
    s.tick()
    assert (s.current_index, s.time_left) == (0, 1)
    s.tick()
    assert (s.current_index, s.time_left) == (1, 2)


def test_expiry_on_last_question_awaits_confirmation(make_questions, topic):
    s = _session(make_questions, topic, n=1, budget=1)
    s.tick()
    assert s.phase is SessionPhase.awaiting_confirmation
    assert s.snapshot().submit_confirm_pending is True


def test_select_overwrites_and_works_on_eliminated(make_questions, topic):
    s = _session(make_questions, topic)
    s.toggle_elimination(2)
    s.select(2)
    s.select(3)
    state = s.snapshot()
    assert state.selections == {"q-0": 3}
    assert state.eliminations == {"q-0": [2]}


def test_toggle_elimination_twice_restores(make_questions, topic):
    s = _session(make_questions, topic)
    s.toggle_elimination(1)
    s.toggle_elimination(1)
    assert s.snapshot().eliminations == {}


def test_invalid_option(make_questions, topic):
    s = _session(make_questions, topic)
    with pytest.raises(InvalidOption):
        s.select(4)
    with pytest.raises(InvalidOption):
        s.toggle_elimination(-1)


def test_next_resets_budget(make_questions, topic):
    s = _session(make_questions, topic, budget=3)
    s.tick()
    s.next()
    assert (s.current_index, s.time_left) == (1, 3)


def test_previous_keeps_running_countdown_by_default(make_questions, topic):
    s = _session(make_questions, topic, budget=3)
    s.next()
    s.tick()
    s.previous()
    assert (s.current_index, s.time_left) == (0, 2)


def test_previous_can_reset_countdown(make_questions, topic):
    s = _session(make_questions, topic, budget=3, reset_timer_on_previous=True)
    s.next()
    s.tick()
    s.previous()
    assert (s.current_index, s.time_left) == (0, 3)


def test_previous_on_first_question_is_noop(make_questions, topic):
    s = _session(make_questions, topic)
    s.previous()
    assert s.current_index == 0


def test_cancel_then_confirm(make_questions, topic):
    s = _session(make_questions, topic, n=2)
    s.select(1)
    s.next()
    s.next()
    assert s.phase is SessionPhase.awaiting_confirmation

    s.cancel_submit()
    assert s.phase is SessionPhase.in_progress
    assert s.current_index == 1
    s.select(0)
    s.next()

    responses = s.confirm_submit()
    assert s.phase is SessionPhase.finished
    assert [(r.question_id, r.selected_option, r.is_correct) for r in responses] == [
        ("q-0", 1, True),
        ("q-1", 0, False),
    ]


def test_unanswered_questions_are_skipped(make_questions, topic):
    s = _session(make_questions, topic, n=2)
    s.next()
    s.next()
    responses = s.confirm_submit()
    assert all(r.selected_option is None and not r.is_correct for r in responses)


def test_invalid_transitions(make_questions, topic):
    s = _session(make_questions, topic, n=1)
    with pytest.raises(InvalidTransition):
        s.confirm_submit()
    with pytest.raises(InvalidTransition):
        s.cancel_submit()
    s.next()
    with pytest.raises(InvalidTransition):
        s.select(0)
    with pytest.raises(InvalidTransition):
        s.tick()
    s.confirm_submit()
    with pytest.raises(InvalidTransition):
        s.next()
    with pytest.raises(InvalidTransition):
        s.confirm_submit()


def test_timer_drives_session_and_stops(make_questions, topic):
    async def scenario():
        s = _session(make_questions, topic, n=2, budget=2, tick_seconds=0.01)
        s.start()
        assert s.timer_running
        for _ in range(100):
            if s.phase is SessionPhase.awaiting_confirmation:
                break
            await asyncio.sleep(0.01)
        assert s.phase is SessionPhase.awaiting_confirmation
        assert not s.timer_running

        # The expired countdown is not refilled, so the next tick asks again.
        s.cancel_submit()
        assert s.timer_running
        for _ in range(100):
            if s.phase is SessionPhase.awaiting_confirmation:
                break
            await asyncio.sleep(0.01)
        assert s.phase is SessionPhase.awaiting_confirmation
        s.confirm_submit()
        assert not s.timer_running

    asyncio.run(scenario())


def test_close_cancels_timer(make_questions, topic):
    async def scenario():
        s = _session(make_questions, topic, tick_seconds=10)
        s.start()
        task = s._timer
        s.close()
        await asyncio.sleep(0)
        assert task.cancelled()
        assert s.phase is SessionPhase.finished
        with pytest.raises(InvalidTransition):
            s.cancel_submit()

    asyncio.run(scenario())


def test_start_is_idempotent(make_questions, topic):
    async def scenario():
        s = _session(make_questions, topic, tick_seconds=10)
        s.start()
        first = s._timer
        s.start()
        assert s._timer is first
        s.close()

    asyncio.run(scenario())
