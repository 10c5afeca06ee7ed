# src/tasksmart/ingestion/tiers.py

"""
Ingestion tiers that need no external service.

- heuristic_tier: keyword matching for category, priority and a due-date phrase
- raw_tier: plain task with the default category and priority (Personal / Medium
  unless the caller passes its own)

Tier outcomes are TierResult values; a tier reports failure instead of raising.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import StrEnum

from ..tasks.task_models import (
    TITLE_MAX_LENGTH,
    Category,
    Priority,
    TaskDraft,
    normalize_title,
    truncate,
)


class Tier(StrEnum):
    AI = "ai"
    HEURISTIC = "heuristic"
    RAW = "raw"


@dataclass(slots=True, frozen=True)
class TierResult:
    tier: Tier
    draft: TaskDraft | None = None
    reason: str | None = None

    @property
    def ok(self) -> bool:
        return self.draft is not None

    @classmethod
    def success(cls, tier: Tier, draft: TaskDraft) -> TierResult:
        return cls(tier=tier, draft=draft)

    @classmethod
    def failure(cls, tier: Tier, reason: str) -> TierResult:
        return cls(tier=tier, reason=reason)


WORK_PHRASES = (
    "work", "project", "meeting", "report", "client", "deadline", "presentation",
    "office", "colleague", "manager", "invoice", "proposal",
)
IMPORTANT_PHRASES = ("important", "critical", "must not forget", "don't forget", "do not forget")

URGENT_PHRASES = ("urgent", "asap", "important", "critical", "immediately", "right away")
DEFERRED_PHRASES = ("later", "eventually", "when possible", "someday", "no rush")

_WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
_DUE_PHRASES: tuple[tuple[str, str], ...] = (
    ("day after tomorrow", "Day after tomorrow"),
    ("tomorrow", "Tomorrow"),
    ("tonight", "Tonight"),
    ("today", "Today"),
    ("next week", "Next Week"),
    ("this weekend", "This Weekend"),
    ("next month", "Next Month"),
)


def _contains_phrase(text: str, phrase: str) -> bool:
    return re.search(rf"\b{re.escape(phrase)}\b", text) is not None


def _matches_any(text: str, phrases: tuple[str, ...]) -> bool:
    return any(_contains_phrase(text, p) for p in phrases)


def detect_category(text: str, default: Category = Category.PERSONAL) -> Category:
    lowered = text.lower()
    if _matches_any(lowered, WORK_PHRASES):
        return Category.WORK
    if _matches_any(lowered, IMPORTANT_PHRASES):
        return Category.IMPORTANT
    # shopping, calls and home errands land in the default (Personal)
    return default


def detect_priority(text: str, default: Priority = Priority.MEDIUM) -> Priority:
    lowered = text.lower()
    if _matches_any(lowered, URGENT_PHRASES):
        return Priority.HIGH
    if _matches_any(lowered, DEFERRED_PHRASES):
        return Priority.LOW
    return default


def detect_due_phrase(text: str) -> str | None:
    lowered = text.lower()
    for phrase, label in _DUE_PHRASES:
        if _contains_phrase(lowered, phrase):
            return label
    for day in _WEEKDAYS:
        if _contains_phrase(lowered, f"next {day}"):
            return f"Next {day.capitalize()}"
        if _contains_phrase(lowered, day):
            return day.capitalize()
    return None


def bounded_title(text: str, limit: int = TITLE_MAX_LENGTH) -> tuple[str, str | None]:
    """
    Return (title, overflow_notes).

    overflow_notes carries the full text when the title had to be truncated.
    """
    clean = normalize_title(text)
    title = truncate(clean, limit)
    return title, (clean if title != clean else None)


def heuristic_tier(
    text: str,
    *,
    title_limit: int = TITLE_MAX_LENGTH,
    default_category: Category = Category.PERSONAL,
    default_priority: Priority = Priority.MEDIUM,
) -> TierResult:
    title, overflow = bounded_title(text, title_limit)
    if not title:
        return TierResult.failure(Tier.HEURISTIC, "empty input")
    return TierResult.success(
        Tier.HEURISTIC,
        TaskDraft(
            title=title,
            category=detect_category(text, default_category),
            priority=detect_priority(text, default_priority),
            due_date=detect_due_phrase(text),
            notes=overflow,
        ),
    )


def raw_tier(
    text: str,
    *,
    title_limit: int = TITLE_MAX_LENGTH,
    category: Category = Category.PERSONAL,
    priority: Priority = Priority.MEDIUM,
) -> TierResult:
    title, overflow = bounded_title(text, title_limit)
    if not title:
        return TierResult.failure(Tier.RAW, "empty input")
    return TierResult.success(
        Tier.RAW,
        TaskDraft(title=title, category=category, priority=priority, notes=overflow),
    )
