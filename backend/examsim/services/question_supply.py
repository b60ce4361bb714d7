from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass, field

from examsim.core.config import settings
from examsim.core.errors import AllBatchesFailed
from examsim.schemas.exam import Question, Topic
from examsim.services.batch_retry import RetryingBatchFetcher
from examsim.services.credential_pool import CredentialPool
from examsim.services.fallback_bank import fallback
from examsim.services.gemini import BatchFetcher

log = logging.getLogger(__name__)

SOURCE_LIVE = "live"
SOURCE_PARTIAL = "partial"
SOURCE_OFFLINE = "offline"


@dataclass
class SupplyReport:
    questions: list[Question]
    source: str
    requested: int
    failed_batches: list[int] = field(default_factory=list)

    @property
    def yielded(self) -> int:
        return len(self.questions)

    @property
    def degraded(self) -> bool:
        return self.source != SOURCE_LIVE


def partition(target_count: int, *, batch_size: int, max_batches: int) -> list[int]:
    """Split `target_count` into near-equal batch sizes, larger batches first."""

    total = max(1, int(target_count))
    n = max(1, min(int(max_batches), math.ceil(total / max(1, int(batch_size)))))
    base, extra = divmod(total, n)
    return [base + (1 if i < extra else 0) for i in range(n)]


class SupplyOrchestrator:
    def __init__(
        self,
        *,
        pool: CredentialPool,
        retrying: RetryingBatchFetcher,
        batch_size: int = 4,
        max_batches: int = 5,
        stagger_seconds: float = 0.25,
    ) -> None:
        self.pool = pool
        self.retrying = retrying
        self.batch_size = max(1, int(batch_size))
        self.max_batches = max(1, int(max_batches))
        self.stagger_seconds = max(0.0, float(stagger_seconds))

    @classmethod
    def from_settings(cls, pool: CredentialPool | None = None) -> "SupplyOrchestrator":
        use_pool = pool if pool is not None else CredentialPool.from_settings()
        retrying = RetryingBatchFetcher.from_settings(fetcher=BatchFetcher.from_settings(), pool=use_pool)
        return cls(
            pool=use_pool,
            retrying=retrying,
            batch_size=settings.supply_batch_size,
            max_batches=settings.supply_max_batches,
            stagger_seconds=settings.supply_stagger_seconds,
        )

    async def _run_batch(self, topic: Topic, size: int, batch_id: int) -> list[Question]:
        # Stagger start times only; batches still run side by side.
        if batch_id and self.stagger_seconds:
            await asyncio.sleep(batch_id * self.stagger_seconds)
        return await self.retrying.fetch_with_retry(topic, size, batch_id)

    async def _collect(self, topic: Topic, target_count: int) -> tuple[list[Question], list[int]]:
        sizes = partition(target_count, batch_size=self.batch_size, max_batches=self.max_batches)
        tasks = [asyncio.create_task(self._run_batch(topic, size, i)) for i, size in enumerate(sizes)]
        results = await asyncio.gather(*tasks, return_exceptions=True)

        merged: list[Question] = []
        failed: list[int] = []
        failures: list[BaseException] = []
        for i, result in enumerate(results):
            if isinstance(result, BaseException):
                failed.append(i)
                failures.append(result)
                log.warning("supply batch %s/%s failed: %s", i + 1, len(sizes), result)
            else:
                merged.extend(result)

        if not merged:
            raise AllBatchesFailed(failures)
        return merged, failed

    def _offline(self, topic: Topic, target_count: int) -> SupplyReport:
        return SupplyReport(
            questions=fallback(topic.name, topic.id),
            source=SOURCE_OFFLINE,
            requested=target_count,
        )

    async def run(self, topic: Topic, target_count: int, *, offline: bool = False) -> SupplyReport:
        target = max(1, int(target_count))
        if offline:
            log.info("supply offline requested topic=%s", topic.id)
            return self._offline(topic, target)
        if not self.pool:
            log.warning("supply skipped: no credentials configured topic=%s", topic.id)
            return self._offline(topic, target)

        try:
            merged, failed = await self._collect(topic, target)
        except AllBatchesFailed as e:
            log.warning("supply failed for every batch topic=%s batches=%s", topic.id, len(e.failures))
            return self._offline(topic, target)

        source = SOURCE_LIVE if len(merged) >= target else SOURCE_PARTIAL
        if source == SOURCE_PARTIAL:
            log.warning(
                "supply degraded topic=%s yielded=%s requested=%s failed_batches=%s",
                topic.id,
                len(merged),
                target,
                failed,
            )
        else:
            log.info("supply ok topic=%s yielded=%s", topic.id, len(merged))
        return SupplyReport(questions=merged, source=source, requested=target, failed_batches=failed)

    async def supply(self, topic: Topic, target_count: int) -> list[Question]:
        report = await self.run(topic, target_count)
        return report.questions
