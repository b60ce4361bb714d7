from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field

from examsim.core.config import settings
from examsim.core.errors import InvalidTransition, SessionNotFound
from examsim.schemas.exam import Question, Score, SessionPhase, StrategicBrief, Topic, UserResponse
from examsim.services import scoring
from examsim.services.briefs import GENERIC_BRIEF, fetch_brief
from examsim.services.exam_session import ExamSession
from examsim.services.question_supply import SOURCE_OFFLINE, SOURCE_PARTIAL, SupplyOrchestrator, SupplyReport
from examsim.services.usage_quota import UsageQuota

log = logging.getLogger(__name__)


@dataclass
class ExamEntry:
    id: str
    session: ExamSession
    report: SupplyReport
    briefs: dict[str, StrategicBrief] = field(default_factory=dict)
    score: Score | None = None

    @property
    def questions(self) -> list[Question]:
        return self.session.questions


def submit_exam(session: ExamSession) -> list[UserResponse]:
    return session.confirm_submit()


def get_score(questions: list[Question], responses: list[UserResponse]) -> Score:
    return scoring.score(questions, responses)


class ExamRegistry:
    """Live exam sessions of this process, keyed by session id.

    Sessions carry a running asyncio timer, so they stay in memory; the
    oldest entries are closed and dropped once `max_sessions` is exceeded.
    """

    def __init__(
        self,
        *,
        orchestrator: SupplyOrchestrator,
        quota: UsageQuota | None = None,
        max_sessions: int = 500,
        tick_seconds: float = 1.0,
        reset_timer_on_previous: bool = False,
        warn_on_partial: bool = True,
        default_target: int = 10,
    ) -> None:
        self.orchestrator = orchestrator
        self.quota = quota
        self.max_sessions = max(1, int(max_sessions))
        self.tick_seconds = float(tick_seconds)
        self.reset_timer_on_previous = bool(reset_timer_on_previous)
        self.warn_on_partial = bool(warn_on_partial)
        self.default_target = max(1, int(default_target))
        self._entries: dict[str, ExamEntry] = {}

    @classmethod
    def from_settings(cls) -> "ExamRegistry":
        return cls(
            orchestrator=SupplyOrchestrator.from_settings(),
            quota=UsageQuota() if settings.quota_enabled else None,
            max_sessions=settings.exam_max_sessions,
            tick_seconds=settings.exam_tick_seconds,
            reset_timer_on_previous=settings.exam_reset_timer_on_previous,
            warn_on_partial=settings.supply_warn_on_partial,
            default_target=settings.supply_default_target,
        )

    def __len__(self) -> int:
        return len(self._entries)

    def _use_offline(self) -> bool:
        if self.quota is None or not self.orchestrator.pool:
            return False
        if not self.quota.acquire():
            log.warning("daily quota exhausted quota=%s; serving offline bank", self.quota.quota)
            return True
        return False

    def warning_for(self, report: SupplyReport) -> str | None:
        if report.source == SOURCE_OFFLINE:
            return "Live question service unavailable; serving the offline question bank."
        if report.source == SOURCE_PARTIAL and self.warn_on_partial:
            return (
                f"Only {report.yielded} of {report.requested} questions could be generated; "
                "the exam continues with a shorter set."
            )
        return None

    async def start_session(self, topic: Topic, target_count: int | None = None) -> ExamEntry:
        target = int(target_count) if target_count else self.default_target
        # Batches never grow past SUPPLY_BATCH_SIZE, so neither does one exam.
        target = min(target, self.orchestrator.batch_size * self.orchestrator.max_batches)
        report = await self.orchestrator.run(topic, target, offline=self._use_offline())

        session = ExamSession(
            questions=report.questions,
            topic=topic,
            reset_timer_on_previous=self.reset_timer_on_previous,
            tick_seconds=self.tick_seconds,
        )
        session.start()

        entry = ExamEntry(id=uuid.uuid4().hex, session=session, report=report)
        self._entries[entry.id] = entry
        self._evict()
        log.info(
            "exam started session=%s topic=%s source=%s questions=%s",
            entry.id,
            topic.id,
            report.source,
            report.yielded,
        )
        return entry

    def _evict(self) -> None:
        while len(self._entries) > self.max_sessions:
            oldest = next(iter(self._entries))
            self._entries.pop(oldest).session.close()

    def get(self, session_id: str) -> ExamEntry:
        entry = self._entries.get(session_id)
        if entry is None:
            raise SessionNotFound(f"exam session {session_id} not found")
        return entry

    def submit(self, session_id: str) -> ExamEntry:
        entry = self.get(session_id)
        responses = submit_exam(entry.session)
        entry.score = get_score(entry.questions, responses)
        log.info(
            "exam finished session=%s correct=%s wrong=%s skipped=%s",
            entry.id,
            entry.score.correct_count,
            entry.score.wrong_count,
            entry.score.skipped_count,
        )
        return entry

    def results(self, session_id: str) -> ExamEntry:
        entry = self.get(session_id)
        if entry.session.phase is not SessionPhase.finished or entry.session.responses is None:
            raise InvalidTransition("results are available once the exam is submitted")
        return entry

    async def brief(self, session_id: str, question_id: str) -> StrategicBrief:
        entry = self.get(session_id)
        cached = entry.briefs.get(question_id)
        if cached is not None:
            return cached
        question = next((q for q in entry.questions if q.id == question_id), None)
        if question is None:
            raise SessionNotFound(f"question {question_id} not in session {session_id}")
        retrying = self.orchestrator.retrying
        out = await fetch_brief(question, entry.session.topic, pool=self.orchestrator.pool, fetcher=retrying.fetcher)
        if out is not GENERIC_BRIEF:
            entry.briefs[question_id] = out
        return out

    def discard(self, session_id: str) -> None:
        entry = self._entries.pop(session_id, None)
        if entry is None:
            raise SessionNotFound(f"exam session {session_id} not found")
        entry.session.close()

    def close_all(self) -> None:
        for entry in self._entries.values():
            entry.session.close()
        self._entries.clear()


_registry: ExamRegistry | None = None


def get_registry() -> ExamRegistry:
    global _registry
    if _registry is None:
        _registry = ExamRegistry.from_settings()
    return _registry


def close_registry() -> None:
    global _registry
    if _registry is not None:
        _registry.close_all()
        _registry = None


async def start_session(topic: Topic, target_count: int) -> tuple[str, list[Question], SupplyReport]:
    entry = await get_registry().start_session(topic, target_count)
    return entry.id, entry.questions, entry.report
