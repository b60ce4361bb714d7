import sys
import time
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

backend_dir = Path(__file__).resolve().parents[1]
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

from examsim.main import create_app
from examsim.schemas.exam import Question, Section, Topic
from examsim.services import exam_registry as exam_registry_module
from examsim.services.batch_retry import RetryingBatchFetcher
from examsim.services.credential_pool import CredentialPool
from examsim.services.exam_registry import ExamRegistry
from examsim.services.gemini import BatchFetcher
from examsim.services.question_supply import SupplyOrchestrator


class _MemoryRedis:
    def __init__(self):
        self._data: dict[str, tuple[str, float | None]] = {}

    def ping(self):
        return True

    def _now(self) -> float:
        return time.time()

    def get(self, key: str):
        v = self._data.get(key)
        if not v:
            return None
        value, exp = v
        if exp is not None and exp <= self._now():
            self._data.pop(key, None)
            return None
        return value

    def set(self, key: str, value: str, ex: int | None = None):
        exp = (self._now() + int(ex)) if ex else None
        self._data[key] = (value, exp)
        return True

    def incr(self, key: str, amount: int = 1):
        cur = self.get(key)
        n = int(cur or 0) + int(amount)
        _, exp = self._data.get(key, ("", None))
        self._data[key] = (str(n), exp)
        return n

    def expire(self, key: str, seconds: int):
        if self.get(key) is None:
            return False
        value, _ = self._data[key]
        self._data[key] = (value, self._now() + int(seconds))
        return True

    def ttl(self, key: str):
        v = self._data.get(key)
        if not v:
            return -2
        _, exp = v
        if exp is None:
            return -1
        return max(0, int(exp - self._now()))


class _DownRedis:
    def ping(self):
        raise ConnectionError("redis down")

    def get(self, key: str):
        raise ConnectionError("redis down")

    def set(self, key: str, value: str, ex: int | None = None):
        raise ConnectionError("redis down")

    def incr(self, key: str, amount: int = 1):
        raise ConnectionError("redis down")


def _make_questions(n: int, *, prefix: str = "q", correct: int = 0) -> list[Question]:
    return [
        Question(
            id=f"{prefix}-{i}",
            text=f"Question {i}?",
            options=["a", "b", "c", "d"],
            correct_answer=correct,
            explanation=f"because {i}",
        )
        for i in range(n)
    ]


@pytest.fixture()
def make_questions():
    return _make_questions


@pytest.fixture()
def topic():
    return Topic(id="indian-polity", name="Indian Polity", subject="Polity", section=Section.general_knowledge)


@pytest.fixture()
def mem_redis(monkeypatch):
    r = _MemoryRedis()
    import examsim.routers.health as health_router_module
    import examsim.services.usage_quota as usage_quota_module

    monkeypatch.setattr(usage_quota_module, "get_redis", lambda: r)
    monkeypatch.setattr(health_router_module, "get_redis", lambda: r)
    return r


@pytest.fixture()
def down_redis(monkeypatch):
    r = _DownRedis()
    import examsim.routers.health as health_router_module
    import examsim.services.usage_quota as usage_quota_module

    monkeypatch.setattr(usage_quota_module, "get_redis", lambda: r)
    monkeypatch.setattr(health_router_module, "get_redis", lambda: r)
    return r


@pytest.fixture()
def offline_registry(monkeypatch):
    # No keys: every start is served from the offline bank. The tick is long so
    # countdowns never fire during a request-driven test.
    pool = CredentialPool([])
    orchestrator = SupplyOrchestrator(
        pool=pool,
        retrying=RetryingBatchFetcher(fetcher=BatchFetcher(base_url="http://gemini", model="dummy"), pool=pool),
        stagger_seconds=0,
    )
    registry = ExamRegistry(orchestrator=orchestrator, quota=None, tick_seconds=3600)
    monkeypatch.setattr(exam_registry_module, "_registry", registry)
    return registry


@pytest.fixture()
def client(offline_registry, mem_redis):
    app = create_app()
    # One portal for the whole test: session timers live on its event loop.
    with TestClient(app) as c:
        yield c
