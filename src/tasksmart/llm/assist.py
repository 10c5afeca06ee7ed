# src/tasksmart/llm/assist.py

"""
AI-assisted task helpers: categorization, summarization and related-task suggestions.

Each helper has a deterministic fallback, so callers never see LLM failures:
- categorize() returns a TierResult (failure instead of raising)
- summarize() falls back to the truncated original text
- suggest() falls back to templated follow-ups
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

from ..core.ports import LLMClient
from ..ingestion.tiers import Tier, TierResult, bounded_title
from ..tasks.task_models import (
    TITLE_MAX_LENGTH,
    Category,
    Priority,
    TaskDraft,
    truncate,
)

logger = logging.getLogger(__name__)

SUMMARY_MAX_LENGTH = 100

CATEGORIZE_SYSTEM_PROMPT = """
You are the task intake module of a task manager.

Input: one free-text task written by the user.

Return STRICT JSON only (no Markdown, no extra text) with these fields:
- "title": short actionable summary of the task (required)
- "category": exactly one of "Personal", "Work", "Important" (required)
- "priority": exactly one of "High", "Medium", "Low" (required)
- "dueDate": the due date as written by the user (e.g. "Tomorrow, 5:00 PM"), or null
- "notes": extra details worth keeping, or null

Do not invent due dates or details that are not in the input.
""".strip()

SUMMARY_SYSTEM_PROMPT = """
You turn long task descriptions into a concise task description.

Return STRICT JSON only:
{ "summary": "<at most 100 characters>", "note": "<optional short advice or null>" }

The summary must keep the concrete action. No commentary.
""".strip()

SUGGEST_SYSTEM_PROMPT = """
You suggest follow-up tasks for a task manager.

Return STRICT JSON only:
{ "suggestions": [ { "title": "...", "category": "Personal|Work|Important", "priority": "High|Medium|Low" } ] }
""".strip()


def _extract_json_object(raw: str) -> str:
    raw = raw.strip()
    if raw.startswith("```"):
        raw = raw.strip("`")
        if raw.lower().startswith("json"):
            raw = raw[4:]
        raw = raw.strip()
    if raw.startswith("{") and raw.endswith("}"):
        return raw
    first = raw.find("{")
    last = raw.rfind("}")
    if first != -1 and last != -1 and last > first:
        return raw[first : last + 1]
    return raw


def _load_object(raw: str) -> dict[str, Any] | None:
    try:
        data = json.loads(_extract_json_object(raw))
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


def _optional_str(v: Any) -> str | None:
    if v is None:
        return None
    s = str(v).strip()
    return s or None


def parse_categorization(raw: str, *, title_limit: int = TITLE_MAX_LENGTH) -> TierResult:
    """
    Turn a model response into a TierResult.

    Anything off-schema is a failure: not JSON, missing title/category/priority,
    or category/priority outside their closed sets.
    """
    data = _load_object(raw)
    if data is None:
        return TierResult.failure(Tier.AI, "response is not a JSON object")

    title_raw = data.get("title")
    if not isinstance(title_raw, str) or not title_raw.strip():
        return TierResult.failure(Tier.AI, "missing title")

    if "category" not in data or "priority" not in data:
        return TierResult.failure(Tier.AI, "missing category or priority")

    category = Category.parse(data.get("category"))
    if category is None:
        return TierResult.failure(Tier.AI, f"category out of range: {data.get('category')!r}")

    priority = Priority.parse(data.get("priority"))
    if priority is None:
        return TierResult.failure(Tier.AI, f"priority out of range: {data.get('priority')!r}")

    title, overflow = bounded_title(title_raw, title_limit)
    if not title:
        # e.g. "..." normalizes to nothing
        return TierResult.failure(Tier.AI, "empty title")
    notes = _optional_str(data.get("notes")) or overflow
    return TierResult.success(
        Tier.AI,
        TaskDraft(
            title=title,
            category=category,
            priority=priority,
            due_date=_optional_str(data.get("dueDate", data.get("due_date"))),
            notes=notes,
        ),
    )


class LLMTaskCategorizer:
    def __init__(self, llm: LLMClient, *, title_limit: int = TITLE_MAX_LENGTH) -> None:
        self._llm = llm
        self._title_limit = title_limit

    async def categorize(self, text: str) -> TierResult:
        try:
            raw = await self._llm.complete(
                [{"role": "user", "content": f"Task: {text}"}],
                CATEGORIZE_SYSTEM_PROMPT,
                json_mode=True,
                max_tokens=200,
            )
        except Exception as e:
            logger.info("AI categorization unavailable (%s): %s", e.__class__.__name__, e)
            return TierResult.failure(Tier.AI, f"service error: {e.__class__.__name__}")

        result = parse_categorization(raw, title_limit=self._title_limit)
        if not result.ok:
            logger.info("AI categorization rejected: %s", result.reason)
            logger.debug("Rejected categorization payload: %r", raw[:500])
        return result


@dataclass(slots=True, frozen=True)
class Summary:
    text: str
    note: str | None = None
    source: str = "ai"


class Summarizer:
    """AI summary first, then the original text truncated."""

    def __init__(self, llm: LLMClient | None, *, max_length: int = SUMMARY_MAX_LENGTH) -> None:
        self._llm = llm
        self._max_length = max_length

    def _fallback(self, text: str) -> Summary:
        return Summary(text=truncate(text.strip(), self._max_length), source="truncated")

    async def summarize(self, text: str, *, use_ai: bool = True) -> Summary:
        if self._llm is None or not use_ai:
            return self._fallback(text)
        try:
            raw = await self._llm.complete(
                [{"role": "user", "content": text}],
                SUMMARY_SYSTEM_PROMPT,
                json_mode=True,
                max_tokens=120,
            )
        except Exception as e:
            logger.info("AI summarization unavailable (%s); truncating.", e.__class__.__name__)
            return self._fallback(text)

        data = _load_object(raw)
        summary = _optional_str(data.get("summary")) if data else _optional_str(raw)
        if not summary:
            return self._fallback(text)
        note = _optional_str(data.get("note")) if data else None
        return Summary(text=truncate(summary, self._max_length), note=note, source="ai")


def fallback_suggestions(task_input: str, count: int = 3) -> list[TaskDraft]:
    base = truncate(task_input.strip(), 60)
    templates = [
        (f"Follow up on: {base}", Category.IMPORTANT, Priority.MEDIUM),
        (f"Prepare materials for: {base}", Category.WORK, Priority.LOW),
        (f"Review progress on: {base}", Category.PERSONAL, Priority.LOW),
    ]
    return [TaskDraft(title=t, category=c, priority=p) for t, c, p in templates[: max(0, count)]]


class TaskSuggester:
    def __init__(self, llm: LLMClient | None) -> None:
        self._llm = llm

    async def suggest(self, task_input: str, count: int = 3, *, use_ai: bool = True) -> list[TaskDraft]:
        if self._llm is None or not use_ai:
            return fallback_suggestions(task_input, count)
        try:
            raw = await self._llm.complete(
                [{"role": "user", "content": f'Based on this task: "{task_input}", suggest {count} related tasks.'}],
                SUGGEST_SYSTEM_PROMPT,
                json_mode=True,
            )
        except Exception as e:
            logger.info("AI suggestions unavailable (%s); using templates.", e.__class__.__name__)
            return fallback_suggestions(task_input, count)

        data = _load_object(raw)
        items = data.get("suggestions") if data else None
        out: list[TaskDraft] = []
        for item in items if isinstance(items, list) else []:
            result = parse_categorization(json.dumps(item)) if isinstance(item, dict) else None
            if result is not None and result.draft is not None:
                out.append(result.draft)
        if not out:
            return fallback_suggestions(task_input, count)
        return out[:count]
