from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from examsim.core.errors import InvalidOption, InvalidTransition
from examsim.schemas.exam import Question, SessionPhase, SessionState, Topic, UserResponse
from examsim.services.topic_rules import time_budget

log = logging.getLogger(__name__)


class ExamSession:
    """Timed state machine for one exam attempt.

    in_progress -> awaiting_confirmation -> finished. The countdown is an
    asyncio task owned by the session; it only exists while the session is
    in_progress and is cancelled on every way out of that phase.
    """

    def __init__(
        self,
        *,
        questions: list[Question],
        topic: Topic,
        budget: Callable[[Topic, int], int] | None = None,
        reset_timer_on_previous: bool = False,
        tick_seconds: float = 1.0,
    ) -> None:
        if not questions:
            raise ValueError("an exam session needs at least one question")
        self.questions = list(questions)
        self.topic = topic
        self._budget = budget or (lambda t, _index: time_budget(t))
        self.reset_timer_on_previous = bool(reset_timer_on_previous)
        self.tick_seconds = float(tick_seconds)

        self.phase = SessionPhase.in_progress
        self.current_index = 0
        self.time_left = self._budget_for(0)
        self.selections: dict[str, int] = {}
        self.eliminations: dict[str, set[int]] = {}
        self.responses: list[UserResponse] | None = None

        self._timer: asyncio.Task | None = None
        self._armed = False

    # -- timer ---------------------------------------------------------------

    def _budget_for(self, index: int) -> int:
        return int(self._budget(self.topic, index))

    @property
    def timer_running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def start(self) -> None:
        """Arm the countdown. Needs a running event loop."""

        if self.phase is not SessionPhase.in_progress or self.timer_running:
            return
        self._timer = asyncio.get_running_loop().create_task(self._run_timer())
        self._armed = True

    def _stop_timer(self) -> None:
        task, self._timer = self._timer, None
        if task is None or task.done():
            return
        # A tick that ends the countdown stops its own task; the loop exits on the phase check.
        if task is not asyncio.current_task():
            task.cancel()

    async def _run_timer(self) -> None:
        while self.phase is SessionPhase.in_progress:
            await asyncio.sleep(self.tick_seconds)
            if self.phase is not SessionPhase.in_progress:
                break
            self.tick()

    # -- transitions ---------------------------------------------------------

    @property
    def current_question(self) -> Question:
        return self.questions[self.current_index]

    @property
    def is_last(self) -> bool:
        return self.current_index == len(self.questions) - 1

    def _require(self, phase: SessionPhase, action: str) -> None:
        if self.phase is not phase:
            raise InvalidTransition(f"cannot {action} while {self.phase.value}")

    def _check_option(self, option: int) -> int:
        idx = int(option)
        if not 0 <= idx < len(self.current_question.options):
            raise InvalidOption(f"option {idx} does not exist on question {self.current_question.id}")
        return idx

    def tick(self) -> None:
        self._require(SessionPhase.in_progress, "tick")
        self.time_left = max(0, self.time_left - 1)
        if self.time_left <= 0:
            log.debug("question timed out session_topic=%s index=%s", self.topic.id, self.current_index)
            self.next()

    def select(self, option: int) -> None:
        self._require(SessionPhase.in_progress, "select")
        # Eliminated options stay selectable.
        self.selections[self.current_question.id] = self._check_option(option)

    def toggle_elimination(self, option: int) -> None:
        self._require(SessionPhase.in_progress, "eliminate")
        idx = self._check_option(option)
        current = self.eliminations.setdefault(self.current_question.id, set())
        if idx in current:
            current.discard(idx)
        else:
            current.add(idx)

    def next(self) -> None:
        self._require(SessionPhase.in_progress, "advance")
        if self.is_last:
            self.phase = SessionPhase.awaiting_confirmation
            self._stop_timer()
            return
        self.current_index += 1
        self.time_left = self._budget_for(self.current_index)

    def previous(self) -> None:
        self._require(SessionPhase.in_progress, "go back")
        if self.current_index == 0:
            return
        self.current_index -= 1
        if self.reset_timer_on_previous:
            self.time_left = self._budget_for(self.current_index)

    def cancel_submit(self) -> None:
        self._require(SessionPhase.awaiting_confirmation, "cancel submission")
        self.phase = SessionPhase.in_progress
        self.current_index = len(self.questions) - 1
        if self._armed:
            self.start()

    def confirm_submit(self) -> list[UserResponse]:
        self._require(SessionPhase.awaiting_confirmation, "submit")
        responses: list[UserResponse] = []
        for q in self.questions:
            selected = self.selections.get(q.id)
            responses.append(
                UserResponse(
                    question_id=q.id,
                    selected_option=selected,
                    is_correct=selected is not None and selected == q.correct_answer,
                )
            )
        self.responses = responses
        self.phase = SessionPhase.finished
        self._stop_timer()
        return responses

    def close(self) -> None:
        self._stop_timer()
        self._armed = False
        if self.phase is not SessionPhase.finished:
            self.phase = SessionPhase.finished

    def snapshot(self) -> SessionState:
        return SessionState(
            phase=self.phase,
            current_index=self.current_index,
            question_count=len(self.questions),
            time_left=self.time_left,
            selections=dict(self.selections),
            eliminations={k: sorted(v) for k, v in self.eliminations.items() if v},
            submit_confirm_pending=self.phase is SessionPhase.awaiting_confirmation,
        )
