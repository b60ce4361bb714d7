from __future__ import annotations

import asyncio
import logging
import random

from examsim.core.config import settings
from examsim.core.errors import BatchExhausted, NoCredentials, SupplyError
from examsim.schemas.exam import Question, Topic
from examsim.services.credential_pool import CredentialPool
from examsim.services.gemini import BatchFetcher

log = logging.getLogger(__name__)


class RetryingBatchFetcher:
    def __init__(
        self,
        *,
        fetcher: BatchFetcher,
        pool: CredentialPool,
        max_retries: int | None = None,
        backoff_seconds: float = 0.4,
        jitter_seconds: float = 0.25,
        rng: random.Random | None = None,
    ) -> None:
        self.fetcher = fetcher
        self.pool = pool
        self.max_retries = max_retries
        self.backoff_seconds = max(0.0, float(backoff_seconds))
        self.jitter_seconds = max(0.0, float(jitter_seconds))
        self._rng = rng or random.Random()

    @classmethod
    def from_settings(cls, *, fetcher: BatchFetcher, pool: CredentialPool) -> "RetryingBatchFetcher":
        return cls(
            fetcher=fetcher,
            pool=pool,
            max_retries=settings.gemini_max_retries,
            backoff_seconds=settings.gemini_backoff_seconds,
            jitter_seconds=settings.gemini_backoff_jitter_seconds,
        )

    def default_retries(self) -> int:
        if self.max_retries is not None:
            return max(0, int(self.max_retries))
        # Consecutive bad keys must not starve a batch of the good ones.
        return len(self.pool) + 1

    def _backoff(self, attempt: int) -> float:
        jitter = self._rng.uniform(0.0, self.jitter_seconds) if self.jitter_seconds else 0.0
        return self.backoff_seconds * attempt + jitter

    async def fetch_with_retry(
        self,
        topic: Topic,
        count: int,
        batch_id: int,
        max_retries: int | None = None,
    ) -> list[Question]:
        retries = self.default_retries() if max_retries is None else max(0, int(max_retries))
        if not self.pool:
            raise BatchExhausted(batch_id, 0, NoCredentials("no Gemini API keys configured"))

        last_err: SupplyError | None = None
        total = retries + 1
        for attempt in range(1, total + 1):
            credential = self.pool.next()
            try:
                out = await self.fetcher.fetch(topic, count, batch_id, credential=credential)
            except SupplyError as e:
                last_err = e
                log.warning(
                    "gemini batch failed batch=%s attempt=%s/%s kind=%s err=%s",
                    batch_id,
                    attempt,
                    total,
                    e.kind,
                    e,
                )
                if attempt < total:
                    await asyncio.sleep(self._backoff(attempt))
                continue

            if attempt > 1:
                log.info("gemini batch recovered batch=%s attempt=%s/%s", batch_id, attempt, total)
            return out

        raise BatchExhausted(batch_id, total, last_err)
