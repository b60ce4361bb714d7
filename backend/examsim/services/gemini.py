from __future__ import annotations

import asyncio
import json
import re
import uuid
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, ValidationError

from examsim.core.config import settings
from examsim.core.errors import BatchParseError, CredentialError, NetworkError, RequestTimeout
from examsim.schemas.exam import OPTION_COUNT, Question, StrategicBrief, Topic
from examsim.services.topic_rules import format_constraint


class GeminiBrief(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    core_principle: StrictStr = Field(alias="corePrinciple")
    exam_context: StrictStr = Field(alias="examContext")
    strategic_approach: StrictStr = Field(alias="strategicApproach")
    recall_hint: StrictStr = Field(alias="recallHint")


class GeminiQuestion(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    text: StrictStr
    options: list[StrictStr]
    # "2" or true are not accepted where an integer index is expected.
    correct_answer: StrictInt = Field(alias="correctAnswer")
    explanation: StrictStr | None = None
    intel_brief: GeminiBrief | None = Field(default=None, alias="intelBrief")


_BRIEF_SCHEMA: dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "corePrinciple": {"type": "STRING"},
        "examContext": {"type": "STRING"},
        "strategicApproach": {"type": "STRING"},
        "recallHint": {"type": "STRING"},
    },
    "required": ["corePrinciple", "examContext", "strategicApproach", "recallHint"],
}

_BATCH_SCHEMA: dict[str, Any] = {
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {
            "id": {"type": "STRING"},
            "text": {"type": "STRING"},
            "options": {"type": "ARRAY", "items": {"type": "STRING"}},
            "correctAnswer": {"type": "INTEGER"},
            "explanation": {"type": "STRING"},
            "intelBrief": _BRIEF_SCHEMA,
        },
        "required": ["text", "options", "correctAnswer"],
    },
}

_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)


def _strip_fences(text: str) -> str:
    return _FENCE_RE.sub("", text or "").strip()


def _extract_json_array(text: str) -> list[Any] | None:
    s = _strip_fences(text)
    if not s:
        return None

    if s.startswith("[") and s.endswith("]"):
        try:
            obj = json.loads(s)
        except ValueError:
            obj = None
        if isinstance(obj, list):
            return obj

    m = re.search(r"\[[\s\S]*\]", s)
    if not m:
        return None
    try:
        obj = json.loads(m.group(0))
    except ValueError:
        return None
    return obj if isinstance(obj, list) else None


def _extract_json_object(text: str) -> dict[str, Any] | None:
    s = _strip_fences(text)
    m = re.search(r"\{[\s\S]*\}", s)
    if not m:
        return None
    try:
        obj = json.loads(m.group(0))
    except ValueError:
        return None
    return obj if isinstance(obj, dict) else None


def _candidate_text(data: object) -> str:
    if not isinstance(data, dict):
        return ""
    # Any envelope of the wrong shape reads as an empty candidate.
    candidates = data.get("candidates")
    if not isinstance(candidates, list) or not candidates or not isinstance(candidates[0], dict):
        return ""
    content = candidates[0].get("content")
    if not isinstance(content, dict):
        return ""
    parts = content.get("parts")
    if not isinstance(parts, list):
        return ""
    return "".join(str(p.get("text") or "") for p in parts if isinstance(p, dict))


def _to_brief(b: GeminiBrief | None) -> StrategicBrief | None:
    if b is None:
        return None
    return StrategicBrief(
        core_principle=b.core_principle,
        exam_context=b.exam_context,
        strategic_approach=b.strategic_approach,
        recall_hint=b.recall_hint,
    )


def parse_batch(raw: str, *, count: int, batch_id: int, nonce: str | None = None) -> list[Question]:
    """Validate one batch response; any malformed item rejects the whole batch."""

    items = _extract_json_array(raw)
    if items is None:
        raise BatchParseError("invalid_json")
    if not items:
        raise BatchParseError("empty_batch")

    tag = nonce or uuid.uuid4().hex[:8]
    out: list[Question] = []
    for idx, item in enumerate(items[: max(1, int(count))]):
        try:
            q = GeminiQuestion.model_validate(item)
        except ValidationError as e:
            raise BatchParseError(f"schema_validation_failed:item_{idx}") from e

        text = q.text.strip()
        if not text:
            raise BatchParseError(f"empty_text:item_{idx}")
        if len(q.options) < OPTION_COUNT:
            raise BatchParseError(f"too_few_options:item_{idx}")
        options = [o.strip() for o in q.options[:OPTION_COUNT]]
        if any(not o for o in options):
            raise BatchParseError(f"empty_option:item_{idx}")
        if not 0 <= q.correct_answer < OPTION_COUNT:
            raise BatchParseError(f"answer_out_of_range:item_{idx}")

        explanation = (q.explanation or "").strip() or None
        out.append(
            Question(
                id=f"gen-{batch_id}-{idx}-{tag}",
                text=text,
                options=options,
                correct_answer=q.correct_answer,
                explanation=explanation,
                intel_brief=_to_brief(q.intel_brief),
            )
        )
    return out


def build_batch_payload(topic: Topic, count: int, *, temperature: float) -> dict[str, Any]:
    subject = topic.subject or topic.section.value
    system = (
        "You are an exam strategist for the UPSC Combined Defence Services examination. "
        f"Section: {topic.section.value}. Subject: {subject}. "
        "Difficulty: high, analytical. Style: concise. "
        "Return ONLY a JSON array. Each item has: text, options (exactly 4 strings), "
        "correctAnswer (0-based integer index of the correct option), explanation (one or two sentences). "
        "Spread correct answers across positions; never make every answer the same index. "
        f"{format_constraint(topic)}"
    )
    return {
        "systemInstruction": {"parts": [{"text": system}]},
        "contents": [
            {
                "role": "user",
                "parts": [{"text": f"Generate {int(count)} multiple-choice questions on {topic.name}."}],
            }
        ],
        "generationConfig": {
            "temperature": float(temperature),
            "responseMimeType": "application/json",
            "responseSchema": _BATCH_SCHEMA,
            "thinkingConfig": {"thinkingBudget": 0},
        },
    }


def build_brief_payload(topic: Topic, question: Question) -> dict[str, Any]:
    options = "\n".join(f"{chr(65 + i)}) {o}" for i, o in enumerate(question.options))
    return {
        "systemInstruction": {
            "parts": [
                {
                    "text": (
                        "You coach candidates for the UPSC Combined Defence Services examination. "
                        "Return ONLY a JSON object with corePrinciple, examContext, strategicApproach "
                        "and recallHint; each at most two sentences."
                    )
                }
            ]
        },
        "contents": [
            {
                "role": "user",
                "parts": [
                    {
                        "text": (
                            f"Topic: {topic.name}\n\nQuestion: {question.text}\n{options}\n"
                            f"Correct option: {chr(65 + question.correct_answer)}"
                        )
                    }
                ],
            }
        ],
        "generationConfig": {
            "temperature": 0.3,
            "responseMimeType": "application/json",
            "responseSchema": _BRIEF_SCHEMA,
            "thinkingConfig": {"thinkingBudget": 0},
        },
    }


class BatchFetcher:
    """One bounded generateContent call per `fetch`; retries live in batch_retry."""

    def __init__(
        self,
        *,
        base_url: str,
        model: str,
        temperature: float = 0.5,
        timeout_connect: float = 3.0,
        timeout_read: float = 12.0,
        timeout_write: float = 12.0,
        request_timeout: float = 15.0,
    ) -> None:
        self.base_url = str(base_url or "").rstrip("/")
        self.model = str(model or "").strip()
        self.temperature = float(temperature)
        self.timeout = httpx.Timeout(
            connect=float(timeout_connect),
            read=float(timeout_read),
            write=float(timeout_write),
            pool=3.0,
        )
        self.request_timeout = float(request_timeout)

    @classmethod
    def from_settings(cls) -> "BatchFetcher":
        return cls(
            base_url=settings.gemini_base_url,
            model=settings.gemini_model,
            temperature=settings.gemini_temperature,
            timeout_connect=settings.gemini_timeout_connect,
            timeout_read=settings.gemini_timeout_read,
            timeout_write=settings.gemini_timeout_write,
            request_timeout=settings.gemini_request_timeout_seconds,
        )

    @property
    def url(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    async def _generate(self, *, credential: str, payload: dict[str, Any]) -> str:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                r = await asyncio.wait_for(
                    client.post(self.url, json=payload, headers={"x-goog-api-key": credential}),
                    timeout=self.request_timeout,
                )
                r.raise_for_status()
                data = r.json()
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise RequestTimeout(f"request timed out: {type(e).__name__}") from e
        except httpx.HTTPStatusError as e:
            status = int(e.response.status_code)
            body_snip = ""
            try:
                body_snip = (e.response.text or "")[:300]
            except Exception:
                body_snip = ""
            if status in {401, 403} or (status == 400 and "API_KEY_INVALID" in body_snip):
                raise CredentialError(f"credential rejected: HTTP_{status}", status_code=status) from e
            raise NetworkError(f"HTTP_{status}: {body_snip}", status_code=status) from e
        except httpx.HTTPError as e:
            raise NetworkError(f"request failed: {type(e).__name__}") from e
        except ValueError as e:
            raise BatchParseError("non_json_body") from e

        raw = _candidate_text(data)
        if not raw.strip():
            raise BatchParseError("empty_candidate")
        return raw

    async def fetch(self, topic: Topic, count: int, batch_id: int, *, credential: str) -> list[Question]:
        payload = build_batch_payload(topic, count, temperature=self.temperature)
        raw = await self._generate(credential=credential, payload=payload)
        return parse_batch(raw, count=count, batch_id=batch_id)

    async def fetch_brief(self, topic: Topic, question: Question, *, credential: str) -> StrategicBrief:
        raw = await self._generate(credential=credential, payload=build_brief_payload(topic, question))
        obj = _extract_json_object(raw)
        if obj is None:
            raise BatchParseError("invalid_json")
        try:
            brief = GeminiBrief.model_validate(obj)
        except ValidationError as e:
            raise BatchParseError("schema_validation_failed") from e
        return _to_brief(brief)
