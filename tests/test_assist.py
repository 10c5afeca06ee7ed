# tests/test_assist.py

from __future__ import annotations

import json
import time
from pathlib import Path
from types import SimpleNamespace

import pytest

from tasksmart.llm.assist import Summarizer, TaskSuggester
from tasksmart.llm.client import OpenRouterLLMClient, friendly_llm_error_message
from tasksmart.llm.usage import UsageLedger
from tasksmart.tasks.task_models import Category

from .fakes import FakeLLMClient


@pytest.mark.asyncio
async def test_summary_uses_ai_when_available() -> None:
    llm = FakeLLMClient(json.dumps({"summary": "Book flights for Lisbon trip", "note": "Check prices early"}))
    summary = await Summarizer(llm).summarize("long rambling text about travel plans " * 5)
    assert summary.source == "ai"
    assert summary.text == "Book flights for Lisbon trip"
    assert summary.note == "Check prices early"


@pytest.mark.asyncio
async def test_summary_falls_back_to_truncation() -> None:
    text = "x" * 250
    failing = await Summarizer(FakeLLMClient(error=RuntimeError("down"))).summarize(text)
    offline = await Summarizer(None, max_length=50).summarize(text)

    assert failing.source == "truncated"
    assert len(failing.text) == 100
    assert offline.text.endswith("...")
    assert len(offline.text) == 50


@pytest.mark.asyncio
async def test_suggestions_filter_invalid_items_and_fall_back() -> None:
    payload = {
        "suggestions": [
            {"title": "Book hotel", "category": "Personal", "priority": "Medium"},
            {"title": "Bad one", "category": "Travel", "priority": "Low"},
        ]
    }
    drafts = await TaskSuggester(FakeLLMClient(json.dumps(payload))).suggest("plan trip")
    assert [d.title for d in drafts] == ["Book hotel"]

    fallback = await TaskSuggester(None).suggest("plan trip", count=2)
    assert len(fallback) == 2
    assert fallback[0].title == "Follow up on: plan trip"
    assert fallback[0].category is Category.IMPORTANT


def test_usage_ledger_counts_per_owner(tmp_path: Path) -> None:
    owner = {"key": "alice"}
    ledger = UsageLedger(tmp_path / "usage.sqlite3", owner=lambda: owner["key"])

    ledger.record("categorize")
    ledger.record("categorize")
    owner["key"] = "Guest123456"
    ledger.record("categorize")

    assert ledger.count() == 3
    assert ledger.count("alice") == 2
    assert ledger.count("Guest123456", since=time.time() - 60) == 1
    assert ledger.count("alice", since=time.time() + 60) == 0


def test_llm_client_requires_key_and_models() -> None:
    with pytest.raises(RuntimeError) as ei:
        OpenRouterLLMClient(SimpleNamespace(openrouter_api_key=None, llm_models=["m"]))
    assert "missing API key" in friendly_llm_error_message(ei.value)

    with pytest.raises(RuntimeError) as ei:
        OpenRouterLLMClient(SimpleNamespace(openrouter_api_key="k", llm_models=[" "]))
    assert "no models" in friendly_llm_error_message(ei.value)
