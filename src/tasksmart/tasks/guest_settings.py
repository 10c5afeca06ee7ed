# src/tasksmart/tasks/guest_settings.py

"""
On-device guest preferences.

Stored as one JSON object under GUEST_SETTINGS_KEY, in the same shape the web
client used:

    {"preferences": {"enableAIFeatures": true, "defaultCategory": "Personal",
                     "defaultPriority": "Medium"},
     "lastActive": "2024-05-01T10:00:00+00:00"}

Decoding is per field: a bad value falls back to its default without
discarding the rest. Unknown keys (e.g. a stored "theme") are preserved on write.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any

from ..core.ports import KeyValueStore
from .task_models import Category, Priority

logger = logging.getLogger(__name__)

GUEST_SETTINGS_KEY = "tasksmart_guest_settings"


@dataclass(slots=True, frozen=True)
class GuestSettings:
    enable_ai_features: bool = True
    default_category: Category = Category.PERSONAL
    default_priority: Priority = Priority.MEDIUM
    last_active: float | None = None


def _iso(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


def _parse_last_active(raw: Any) -> float | None:
    if not isinstance(raw, str) or not raw.strip():
        return None
    try:
        parsed = datetime.fromisoformat(raw.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()


class GuestSettingsStore:
    def __init__(self, kv: KeyValueStore) -> None:
        self._kv = kv

    def _load_raw(self) -> dict[str, Any]:
        raw = self._kv.get(GUEST_SETTINGS_KEY)
        if not raw:
            return {}
        try:
            data = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            logger.warning("Guest settings are unreadable; using defaults.")
            return {}
        if not isinstance(data, dict):
            logger.warning("Guest settings are not an object; using defaults.")
            return {}
        return data

    def get(self) -> GuestSettings:
        data = self._load_raw()
        prefs = data.get("preferences")
        if not isinstance(prefs, dict):
            prefs = {}

        defaults = GuestSettings()
        ai = prefs.get("enableAIFeatures")
        return GuestSettings(
            enable_ai_features=ai if isinstance(ai, bool) else defaults.enable_ai_features,
            default_category=Category.parse(prefs.get("defaultCategory")) or defaults.default_category,
            default_priority=Priority.parse(prefs.get("defaultPriority")) or defaults.default_priority,
            last_active=_parse_last_active(data.get("lastActive")),
        )

    def _save(self, settings: GuestSettings) -> None:
        data = self._load_raw()
        prefs = data.get("preferences")
        prefs = dict(prefs) if isinstance(prefs, dict) else {}
        prefs.update(
            enableAIFeatures=settings.enable_ai_features,
            defaultCategory=settings.default_category.value,
            defaultPriority=settings.default_priority.value,
        )
        data["preferences"] = prefs
        if settings.last_active is not None:
            data["lastActive"] = _iso(settings.last_active)
        self._kv.set(GUEST_SETTINGS_KEY, json.dumps(data, ensure_ascii=False).encode("utf-8"))

    def update(
        self,
        *,
        enable_ai_features: bool | None = None,
        default_category: Category | str | None = None,
        default_priority: Priority | str | None = None,
    ) -> GuestSettings:
        """Partial update; values outside the closed sets raise ValueError."""
        current = self.get()
        changes: dict[str, Any] = {}
        if enable_ai_features is not None:
            changes["enable_ai_features"] = bool(enable_ai_features)
        if default_category is not None:
            cat = Category.parse(default_category)
            if cat is None:
                raise ValueError(f"Unknown category: {default_category!r}")
            changes["default_category"] = cat
        if default_priority is not None:
            pri = Priority.parse(default_priority)
            if pri is None:
                raise ValueError(f"Unknown priority: {default_priority!r}")
            changes["default_priority"] = pri

        updated = replace(current, **changes, last_active=time.time())
        self._save(updated)
        logger.info("Guest settings updated: %s", sorted(changes))
        return updated

    def touch(self) -> None:
        self._save(replace(self.get(), last_active=time.time()))

    def clear(self) -> None:
        self._kv.remove(GUEST_SETTINGS_KEY)
