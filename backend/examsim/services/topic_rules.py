from __future__ import annotations

import enum

from examsim.schemas.exam import Section, Topic


class TopicKind(str, enum.Enum):
    comprehension = "comprehension"
    ordering = "ordering"
    fill_blank = "fill_blank"
    error_spotting = "error_spotting"
    quantitative = "quantitative"
    recall = "recall"


# Topic ids whose question format differs from their section's default.
TOPIC_KINDS: dict[str, TopicKind] = {
    "reading-comprehension": TopicKind.comprehension,
    "comprehension": TopicKind.comprehension,
    "sentence-rearrangement": TopicKind.ordering,
    "para-jumbles": TopicKind.ordering,
    "ordering-of-words": TopicKind.ordering,
    "fill-in-the-blanks": TopicKind.fill_blank,
    "cloze-test": TopicKind.fill_blank,
    "spotting-errors": TopicKind.error_spotting,
}

SECTION_KINDS: dict[Section, TopicKind] = {
    Section.mathematics: TopicKind.quantitative,
}

FORMAT_CONSTRAINTS: dict[TopicKind, str] = {
    TopicKind.comprehension: (
        "Every question MUST begin with a short passage (80-120 words) followed by the question "
        "about that passage; all four options must be answerable from the passage alone."
    ),
    TopicKind.ordering: (
        "Every question MUST present one sentence split into four jumbled fragments labelled "
        "P, Q, R and S; each option is an ordering such as 'QPSR'."
    ),
    TopicKind.fill_blank: (
        "Every question MUST contain exactly one blank written as '____' and the options are "
        "candidate words or phrases for that blank."
    ),
    TopicKind.error_spotting: (
        "Every question MUST be a sentence divided into segments marked (A), (B) and (C); the "
        "options are 'A', 'B', 'C' and 'No error'."
    ),
    TopicKind.quantitative: (
        "Every question MUST be a numerical problem solvable in under two minutes; options are "
        "distinct numeric values with units where relevant."
    ),
    TopicKind.recall: (
        "Questions are concise factual or analytical stems; options are short and mutually exclusive."
    ),
}

TIME_BUDGETS_SECONDS: dict[TopicKind, int] = {
    TopicKind.comprehension: 90,
    TopicKind.quantitative: 120,
}
DEFAULT_TIME_BUDGET_SECONDS = 45


def classify(topic: Topic) -> TopicKind:
    kind = TOPIC_KINDS.get(topic.id.strip().lower())
    if kind is not None:
        return kind
    return SECTION_KINDS.get(topic.section, TopicKind.recall)


def format_constraint(topic: Topic) -> str:
    return FORMAT_CONSTRAINTS[classify(topic)]


def time_budget(topic: Topic) -> int:
    return TIME_BUDGETS_SECONDS.get(classify(topic), DEFAULT_TIME_BUDGET_SECONDS)
