from __future__ import annotations

import json
import logging
from datetime import date, timedelta
from typing import List, Optional

from pydantic import ValidationError as PydanticValidationError

from dojo.core.logging import log_event
from dojo.core.store import KeyValueStore, StoreKeys
from dojo.models.challenge import Challenge
from dojo.models.progress import HistoryEntry, StreakState

logger = logging.getLogger("dojo")

HISTORY_LIMIT = 60
ANALYSIS_EXCERPT_LIMIT = 120


class ProgressLedger:
    """Streak counter and bounded history, persisted through the store.

    Mutated only by record_completion, once per successful thread.
    """

    def __init__(self, *, store: KeyValueStore, keys: Optional[StoreKeys] = None):
        self._store = store
        self._keys = keys or StoreKeys()

    def state(self, today: Optional[date] = None) -> StreakState:
        count, last = self._load_streak()
        return StreakState(
            count=count,
            last_completed_date=last or None,
            completed_today=bool(today) and last == today.isoformat(),
        )

    def history(self) -> List[HistoryEntry]:
        raw = self._store.get(self._keys.history)
        if not raw:
            return []
        try:
            items = json.loads(raw)
        except ValueError:
            logger.warning("streak.history_unreadable")
            return []
        if not isinstance(items, list):
            logger.warning("streak.history_unreadable")
            return []

        entries: List[HistoryEntry] = []
        for item in items:
            try:
                entries.append(HistoryEntry.model_validate(item))
            except PydanticValidationError:
                logger.warning("streak.history_entry_skipped")
        return entries

    def record_completion(
        self,
        *,
        today: date,
        day_index: int,
        challenge: Challenge,
        analysis: str,
    ) -> StreakState:
        count, last = self._load_streak()
        today_iso = today.isoformat()
        yesterday_iso = (today - timedelta(days=1)).isoformat()

        if last == yesterday_iso:
            count += 1
        elif last == today_iso:
            pass  # re-completion on the same day keeps the streak
        else:
            count = 1

        self._store.set(self._keys.streak, str(count))
        self._store.set(self._keys.streak_date, today_iso)

        entry = HistoryEntry(
            date=today_iso,
            day_index=day_index,
            title=challenge.title,
            category=challenge.category,
            difficulty=challenge.difficulty.value,
            analysis_excerpt=analysis[:ANALYSIS_EXCERPT_LIMIT],
        )
        history = [entry] + [h for h in self.history() if h.date != today_iso]
        self._store.set(
            self._keys.history,
            json.dumps([h.model_dump(by_alias=True) for h in history[:HISTORY_LIMIT]]),
        )

        log_event("info", "streak.recorded", event_type="streak.recorded", extra={"streak": count, "day_index": day_index})
        return StreakState(count=count, last_completed_date=today_iso, completed_today=True)

    def _load_streak(self) -> tuple[int, str]:
        raw_count = self._store.get(self._keys.streak) or "0"
        try:
            count = max(0, int(raw_count))
        except ValueError:
            logger.warning("streak.count_unreadable")
            count = 0
        last = self._store.get(self._keys.streak_date) or ""
        return count, last
