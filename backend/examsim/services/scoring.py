from __future__ import annotations

from examsim.schemas.exam import Question, Score, UserResponse

# One third of a mark is deducted for every wrong answer.
NEGATIVE_MARK = 1 / 3


def score(questions: list[Question], responses: list[UserResponse]) -> Score:
    correct = sum(1 for r in responses if r.is_correct)
    attempted = sum(1 for r in responses if r.selected_option is not None)
    wrong = attempted - correct
    return Score(
        correct_count=correct,
        wrong_count=wrong,
        skipped_count=len(questions) - attempted,
        numeric_score=correct - wrong * NEGATIVE_MARK,
    )
