import asyncio

import pytest

from examsim.core.errors import InvalidTransition, NetworkError, SessionNotFound
from examsim.schemas.exam import SessionPhase
from examsim.services.briefs import GENERIC_BRIEF, GENERIC_EXPLANATION, explanation_for
from examsim.services.credential_pool import CredentialPool
from examsim.services.exam_registry import ExamRegistry
from examsim.services.question_supply import SOURCE_LIVE, SOURCE_OFFLINE, SOURCE_PARTIAL, SupplyOrchestrator
from examsim.services.usage_quota import UsageQuota


class _StubRetrying:
    def __init__(self, make_questions, per_batch=None):
        self.make_questions = make_questions
        self.per_batch = per_batch
        self.calls = 0
        self.fetcher = None

    async def fetch_with_retry(self, topic, count, batch_id, max_retries=None):
        self.calls += 1
        n = count if self.per_batch is None else min(count, self.per_batch)
        return self.make_questions(n, prefix=f"b{batch_id}")


def _registry(make_questions, *, keys=("k1",), quota=None, per_batch=None, **kw):
    retrying = _StubRetrying(make_questions, per_batch)
    orchestrator = SupplyOrchestrator(pool=CredentialPool(list(keys)), retrying=retrying, stagger_seconds=0)
    return ExamRegistry(orchestrator=orchestrator, quota=quota, tick_seconds=3600, **kw), retrying


def test_start_submit_score(make_questions, topic):
    async def scenario():
        registry, _ = _registry(make_questions)
        entry = await registry.start_session(topic, 4)
        assert entry.report.source == SOURCE_LIVE
        assert registry.warning_for(entry.report) is None
        assert entry.session.timer_running

        s = entry.session
        s.select(0)
        for _ in range(4):
            s.next()
        with pytest.raises(InvalidTransition):
            registry.results(entry.id)

        done = registry.submit(entry.id)
        assert done.score.correct_count == 1
        assert done.score.skipped_count == 3
        assert registry.results(entry.id) is done
        assert not s.timer_running
        registry.close_all()

    asyncio.run(scenario())


def test_partial_supply_warns_unless_disabled(make_questions, topic):
    async def scenario():
        registry, _ = _registry(make_questions, per_batch=2)
        entry = await registry.start_session(topic, 8)
        assert entry.report.source == SOURCE_PARTIAL
        assert "4 of 8" in registry.warning_for(entry.report)

        quiet, _ = _registry(make_questions, per_batch=2, warn_on_partial=False)
        entry = await quiet.start_session(topic, 8)
        assert quiet.warning_for(entry.report) is None
        registry.close_all()
        quiet.close_all()

    asyncio.run(scenario())


def test_default_target_used_when_missing(make_questions, topic):
    async def scenario():
        registry, _ = _registry(make_questions, default_target=6)
        entry = await registry.start_session(topic)
        assert len(entry.questions) == 6
        registry.close_all()

    asyncio.run(scenario())


def test_exhausted_quota_serves_offline_bank(mem_redis, make_questions, topic):
    async def scenario():
        registry, retrying = _registry(make_questions, quota=UsageQuota(quota=1))
        first = await registry.start_session(topic, 4)
        assert first.report.source == SOURCE_LIVE
        second = await registry.start_session(topic, 4)
        assert second.report.source == SOURCE_OFFLINE
        assert registry.warning_for(second.report)
        assert retrying.calls == 1
        registry.close_all()

    asyncio.run(scenario())


def test_oldest_sessions_are_evicted(make_questions, topic):
    async def scenario():
        registry, _ = _registry(make_questions, max_sessions=2)
        first = await registry.start_session(topic, 2)
        await registry.start_session(topic, 2)
        await registry.start_session(topic, 2)
        assert len(registry) == 2
        with pytest.raises(SessionNotFound):
            registry.get(first.id)
        assert first.session.phase is SessionPhase.finished
        registry.close_all()

    asyncio.run(scenario())


def test_discard(make_questions, topic):
    async def scenario():
        registry, _ = _registry(make_questions)
        entry = await registry.start_session(topic, 2)
        registry.discard(entry.id)
        assert not entry.session.timer_running
        with pytest.raises(SessionNotFound):
            registry.discard(entry.id)

    asyncio.run(scenario())


def test_brief_without_keys_is_generic_and_cached(make_questions, topic):
    async def scenario():
        registry, _ = _registry(make_questions, keys=())
        entry = await registry.start_session(topic, 3)
        qid = entry.questions[0].id
        assert await registry.brief(entry.id, qid) == GENERIC_BRIEF
        assert entry.briefs[qid] == GENERIC_BRIEF
        with pytest.raises(SessionNotFound):
            await registry.brief(entry.id, "missing")
        registry.close_all()

    asyncio.run(scenario())


def test_explanation_falls_back_to_generic(make_questions):
    q = make_questions(1)[0]
    assert explanation_for(q) == "because 0"
    assert explanation_for(q.model_copy(update={"explanation": "  "})) == GENERIC_EXPLANATION


def test_generic_brief_is_not_cached(make_questions, topic):
    from examsim.schemas.exam import StrategicBrief

    live = StrategicBrief(core_principle="p", exam_context="c", strategic_approach="s", recall_hint="r")

    class _Fetcher:
        def __init__(self):
            self.calls = 0

        async def fetch_brief(self, topic, question, *, credential):
            self.calls += 1
            if self.calls == 1:
                raise NetworkError("flaky")
            return live

    async def scenario():
        registry, retrying = _registry(make_questions)
        retrying.fetcher = _Fetcher()
        entry = await registry.start_session(topic, 2)
        qid = entry.questions[0].id

        assert await registry.brief(entry.id, qid) == GENERIC_BRIEF
        assert qid not in entry.briefs
        assert await registry.brief(entry.id, qid) == live
        assert await registry.brief(entry.id, qid) == live
        assert retrying.fetcher.calls == 2
        registry.close_all()

    asyncio.run(scenario())


def test_target_capped_at_batch_capacity(make_questions, topic):
    async def scenario():
        registry, retrying = _registry(make_questions)
        entry = await registry.start_session(topic, 50)
        assert len(entry.questions) == 20
        assert entry.report.requested == 20
        assert retrying.calls == 5
        registry.close_all()

    asyncio.run(scenario())
