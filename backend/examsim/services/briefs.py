from __future__ import annotations

import logging

from examsim.core.errors import SupplyError
from examsim.schemas.exam import Question, StrategicBrief, Topic
from examsim.services.credential_pool import CredentialPool
from examsim.services.gemini import BatchFetcher

log = logging.getLogger(__name__)

GENERIC_BRIEF = StrategicBrief(
    core_principle="Focus on the fundamentals behind the question rather than the surface facts.",
    exam_context="Questions of this kind recur across recent papers.",
    strategic_approach="1. Read every option. 2. Eliminate the clearly wrong ones. 3. Select.",
    recall_hint="Build a short acronym or timeline for the key facts.",
)

GENERIC_EXPLANATION = "A detailed explanation is not available for this question right now."


def explanation_for(question: Question) -> str:
    return (question.explanation or "").strip() or GENERIC_EXPLANATION


async def fetch_brief(
    question: Question,
    topic: Topic,
    *,
    pool: CredentialPool,
    fetcher: BatchFetcher,
) -> StrategicBrief:
    """Strategic brief for one question; failures degrade to GENERIC_BRIEF."""

    if question.intel_brief is not None:
        return question.intel_brief

    try:
        credential = pool.next()
        return await fetcher.fetch_brief(topic, question, credential=credential)
    except SupplyError as e:
        log.warning("brief unavailable question=%s kind=%s err=%s", question.id, e.kind, e)
        return GENERIC_BRIEF
