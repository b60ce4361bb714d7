from __future__ import annotations

from collections.abc import Callable

from fastapi import APIRouter, Depends, HTTPException

from examsim.core.errors import InvalidOption, InvalidTransition, SessionNotFound
from examsim.schemas.exam import (
    OptionRequest,
    QuestionPublic,
    ResultItem,
    ResultsResponse,
    SessionState,
    StartExamRequest,
    StartExamResponse,
    StrategicBrief,
    SubmitResponse,
)
from examsim.services.briefs import explanation_for
from examsim.services.exam_registry import ExamRegistry, get_registry
from examsim.services.exam_session import ExamSession

router = APIRouter(prefix="/exams", tags=["exams"])


def _entry(registry: ExamRegistry, session_id: str):
    try:
        return registry.get(session_id)
    except SessionNotFound as e:
        raise HTTPException(status_code=404, detail="exam session not found") from e


def _apply(registry: ExamRegistry, session_id: str, action: Callable[[ExamSession], None]) -> SessionState:
    entry = _entry(registry, session_id)
    try:
        action(entry.session)
    except InvalidOption as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    except InvalidTransition as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    return entry.session.snapshot()


@router.post("/start", response_model=StartExamResponse)
async def start_exam(body: StartExamRequest, registry: ExamRegistry = Depends(get_registry)):
    entry = await registry.start_session(body.topic, body.target_count)
    return StartExamResponse(
        session_id=entry.id,
        source=entry.report.source,
        warning=registry.warning_for(entry.report),
        questions=[QuestionPublic.from_question(q) for q in entry.questions],
        state=entry.session.snapshot(),
    )


@router.get("/{session_id}", response_model=SessionState)
async def get_state(session_id: str, registry: ExamRegistry = Depends(get_registry)):
    return _entry(registry, session_id).session.snapshot()


@router.post("/{session_id}/select", response_model=SessionState)
async def select_option(session_id: str, body: OptionRequest, registry: ExamRegistry = Depends(get_registry)):
    return _apply(registry, session_id, lambda s: s.select(body.option))


@router.post("/{session_id}/eliminate", response_model=SessionState)
async def toggle_elimination(session_id: str, body: OptionRequest, registry: ExamRegistry = Depends(get_registry)):
    return _apply(registry, session_id, lambda s: s.toggle_elimination(body.option))


@router.post("/{session_id}/next", response_model=SessionState)
async def next_question(session_id: str, registry: ExamRegistry = Depends(get_registry)):
    return _apply(registry, session_id, lambda s: s.next())


@router.post("/{session_id}/previous", response_model=SessionState)
async def previous_question(session_id: str, registry: ExamRegistry = Depends(get_registry)):
    return _apply(registry, session_id, lambda s: s.previous())


@router.post("/{session_id}/cancel-submit", response_model=SessionState)
async def cancel_submit(session_id: str, registry: ExamRegistry = Depends(get_registry)):
    return _apply(registry, session_id, lambda s: s.cancel_submit())


@router.post("/{session_id}/submit", response_model=SubmitResponse)
async def submit_exam(session_id: str, registry: ExamRegistry = Depends(get_registry)):
    _entry(registry, session_id)
    try:
        entry = registry.submit(session_id)
    except InvalidTransition as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    return SubmitResponse(session_id=entry.id, responses=entry.session.responses or [], score=entry.score)


@router.get("/{session_id}/results", response_model=ResultsResponse)
async def get_results(session_id: str, registry: ExamRegistry = Depends(get_registry)):
    _entry(registry, session_id)
    try:
        entry = registry.results(session_id)
    except InvalidTransition as e:
        raise HTTPException(status_code=409, detail=str(e)) from e

    items = [
        ResultItem(question=q, response=r, explanation=explanation_for(q))
        for q, r in zip(entry.questions, entry.session.responses or [])
    ]
    return ResultsResponse(session_id=entry.id, topic=entry.session.topic, items=items, score=entry.score)


@router.get("/{session_id}/questions/{question_id}/brief", response_model=StrategicBrief)
async def get_brief(session_id: str, question_id: str, registry: ExamRegistry = Depends(get_registry)):
    try:
        return await registry.brief(session_id, question_id)
    except SessionNotFound as e:
        raise HTTPException(status_code=404, detail=str(e)) from e


@router.delete("/{session_id}")
async def discard_exam(session_id: str, registry: ExamRegistry = Depends(get_registry)):
    try:
        registry.discard(session_id)
    except SessionNotFound as e:
        raise HTTPException(status_code=404, detail="exam session not found") from e
    return {"ok": True}
