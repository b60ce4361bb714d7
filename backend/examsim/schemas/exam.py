from __future__ import annotations

import enum

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator
from pydantic.alias_generators import to_camel

OPTION_COUNT = 4


class _Wire(BaseModel):
    # JSON uses camelCase (correctAnswer, intelBrief); Python uses snake_case.
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Section(str, enum.Enum):
    english = "English"
    mathematics = "Elementary Mathematics"
    general_knowledge = "General Knowledge"


class Topic(_Wire):
    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    subject: str = ""
    section: Section = Section.general_knowledge


class StrategicBrief(_Wire):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    core_principle: str
    exam_context: str
    strategic_approach: str
    recall_hint: str


class Question(_Wire):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    text: str
    options: list[str]
    correct_answer: int
    explanation: str | None = None
    intel_brief: StrategicBrief | None = None

    @model_validator(mode="after")
    def _check_options(self) -> "Question":
        if len(self.options) != OPTION_COUNT:
            raise ValueError(f"question must have exactly {OPTION_COUNT} options")
        if not 0 <= self.correct_answer < len(self.options):
            raise ValueError("correct_answer must index an option")
        return self


class QuestionPublic(_Wire):
    id: str
    text: str
    options: list[str]

    @classmethod
    def from_question(cls, q: Question) -> "QuestionPublic":
        return cls(id=q.id, text=q.text, options=list(q.options))


class UserResponse(_Wire):
    question_id: str
    selected_option: int | None
    is_correct: bool


class Score(_Wire):
    correct_count: int
    wrong_count: int
    skipped_count: int
    numeric_score: float

    @computed_field(alias="displayScore")
    @property
    def display_score(self) -> float:
        return round(self.numeric_score, 2)


class SessionPhase(str, enum.Enum):
    in_progress = "in_progress"
    awaiting_confirmation = "awaiting_confirmation"
    finished = "finished"


class SessionState(_Wire):
    phase: SessionPhase
    current_index: int
    question_count: int
    time_left: int
    selections: dict[str, int]
    eliminations: dict[str, list[int]]
    submit_confirm_pending: bool


class StartExamRequest(_Wire):
    topic: Topic
    target_count: int | None = Field(default=None, ge=1, le=50)


class StartExamResponse(_Wire):
    session_id: str
    source: str
    warning: str | None = None
    questions: list[QuestionPublic]
    state: SessionState


class OptionRequest(_Wire):
    option: int = Field(ge=0, lt=OPTION_COUNT)


class SubmitResponse(_Wire):
    session_id: str
    responses: list[UserResponse]
    score: Score


class ResultItem(_Wire):
    question: Question
    response: UserResponse
    explanation: str


class ResultsResponse(_Wire):
    session_id: str
    topic: Topic
    items: list[ResultItem]
    score: Score


class QuotaResponse(_Wire):
    remaining: int
    quota: int
    day: str
