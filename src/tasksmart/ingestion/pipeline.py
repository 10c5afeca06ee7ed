# src/tasksmart/ingestion/pipeline.py

"""
Free text -> structured task draft.

Strict fallback order; a tier is only tried when the previous one failed or
is unavailable:
1. AI categorizer (bounded by a timeout, never retried)
2. keyword heuristics
3. raw task (default category / priority, Personal / Medium unless overridden)

process() never raises for non-blank input. Only AI successes are recorded
for usage accounting.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from ..core.errors import TaskValidationError
from ..core.ports import UsageRecorder
from ..tasks.task_models import TITLE_MAX_LENGTH, Category, Priority, TaskDraft
from .tiers import Tier, TierResult, heuristic_tier, raw_tier

logger = logging.getLogger(__name__)


class TaskCategorizer(Protocol):
    async def categorize(self, text: str) -> TierResult: ...


class IngestionPipeline:
    def __init__(
        self,
        categorizer: TaskCategorizer | None = None,
        *,
        usage: UsageRecorder | None = None,
        ai_timeout_seconds: float = 8.0,
        use_heuristics: bool = True,
        title_limit: int = TITLE_MAX_LENGTH,
    ) -> None:
        self._categorizer = categorizer
        self._usage = usage
        self._ai_timeout = ai_timeout_seconds
        self._use_heuristics = use_heuristics
        self._title_limit = title_limit

    @property
    def ai_available(self) -> bool:
        return self._categorizer is not None

    async def _ai_tier(self, text: str) -> TierResult:
        if self._categorizer is None:
            return TierResult.failure(Tier.AI, "no categorizer configured")
        try:
            return await asyncio.wait_for(self._categorizer.categorize(text), timeout=self._ai_timeout)
        except TimeoutError:
            logger.info("AI categorization timed out after %.1fs; falling back.", self._ai_timeout)
            return TierResult.failure(Tier.AI, "timeout")
        except Exception as e:
            logger.exception("AI categorizer raised; falling back.")
            return TierResult.failure(Tier.AI, f"categorizer error: {e.__class__.__name__}")

    def _record_usage(self) -> None:
        if self._usage is None:
            return
        try:
            self._usage.record("categorize")
        except Exception:
            logger.exception("Failed to record AI usage.")

    async def run(
        self,
        raw_text: str,
        *,
        use_ai: bool = True,
        categorize: bool = True,
        default_category: Category = Category.PERSONAL,
        default_priority: Priority = Priority.MEDIUM,
    ) -> TierResult:
        """
        Run the tiers and return the winning TierResult.

        use_ai=False skips tier 1 (guest mode); categorize=False goes straight to the raw tier.
        The defaults fill in whatever the heuristics cannot detect, and the raw tier uses
        them as-is.
        """
        text = (raw_text or "").strip()
        if not text:
            raise TaskValidationError("title", "task description cannot be empty")

        attempts: list[TierResult] = []

        if categorize and use_ai and self._categorizer is not None:
            result = await self._ai_tier(text)
            if result.ok:
                self._record_usage()
                return result
            attempts.append(result)

        if categorize and self._use_heuristics:
            result = heuristic_tier(
                text,
                title_limit=self._title_limit,
                default_category=default_category,
                default_priority=default_priority,
            )
            if result.ok:
                if attempts:
                    logger.debug("Ingestion fell back to heuristics (%s)", attempts[-1].reason)
                return result
            attempts.append(result)

        result = raw_tier(
            text, title_limit=self._title_limit, category=default_category, priority=default_priority
        )
        if not result.ok:
            # blank after normalization (e.g. only punctuation)
            raise TaskValidationError("title", "task description cannot be empty")
        return result

    async def process(
        self,
        raw_text: str,
        *,
        use_ai: bool = True,
        categorize: bool = True,
        default_category: Category = Category.PERSONAL,
        default_priority: Priority = Priority.MEDIUM,
    ) -> TaskDraft:
        result = await self.run(
            raw_text,
            use_ai=use_ai,
            categorize=categorize,
            default_category=default_category,
            default_priority=default_priority,
        )
        if result.draft is None:
            raise TaskValidationError("title", f"no tier produced a task ({result.reason or 'unknown'})")
        return result.draft
