from __future__ import annotations

import logging
import threading
import time
import weakref
from datetime import datetime
from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from dojo.core.errors import AppError, GenerationFailed, MalformedResponse, ServiceError
from dojo.core.logging import latency_bucket_ms, log_event
from dojo.core.retry import RetryPolicy
from dojo.core.store import KeyValueStore, StoreKeys
from dojo.features.ai.client import Completer
from dojo.features.ai.prompts import build_challenge_prompt
from dojo.features.ai.recovery import recover
from dojo.features.schedule import service as schedule
from dojo.models.challenge import Challenge, DayAssignment

logger = logging.getLogger("dojo")


class ChallengeService:
    """Day-keyed challenge cache in front of a bounded generate-and-parse loop."""

    def __init__(
        self,
        *,
        store: KeyValueStore,
        client: Completer,
        policy: Optional[RetryPolicy] = None,
        keys: Optional[StoreKeys] = None,
    ):
        self._store = store
        self._client = client
        self._policy = policy or RetryPolicy()
        self._keys = keys or StoreKeys()
        # Entries disappear once no thread holds or waits on the key's lock
        self._locks: "weakref.WeakValueDictionary[str, threading.Lock]" = weakref.WeakValueDictionary()
        self._locks_guard = threading.Lock()

    def obtain(self, offset_days: int, credential: str, *, now: Optional[datetime] = None) -> Challenge:
        """Return the challenge for a day offset, generating it on a cache miss.

        Raises:
            ValidationError: the offset lands before the first challenge day
            GenerationFailed: every attempt failed; nothing was cached
        """
        assignment = schedule.require_scheduled(schedule.assign(offset_days, now))
        key = schedule.cache_key(offset_days, now)

        cached = self._load(key, assignment)
        if cached is not None:
            return cached

        # One in-flight generation per cache key within this process
        lock = self._lock_for(key)
        with lock:
            cached = self._load(key, assignment)
            if cached is not None:
                return cached
            challenge = self._generate(assignment, key, schedule.today_key(now), credential)
            self._store.set(self._keys.challenge(key), challenge.to_json())
            return challenge

    def peek(self, offset_days: int, *, now: Optional[datetime] = None) -> Optional[Challenge]:
        """Cached challenge for an offset, without generating."""
        return self._load(schedule.cache_key(offset_days, now), schedule.assign(offset_days, now))

    # Internal helpers -------------------------------------------------
    def _load(self, key: str, assignment: DayAssignment) -> Optional[Challenge]:
        raw = self._store.get(self._keys.challenge(key))
        if not raw:
            return None
        try:
            stored = Challenge.model_validate_json(raw)
        except PydanticValidationError:
            logger.warning("challenge.cache_unreadable", extra={"cache_key": key})
            return None
        log_event("info", "challenge.cache_hit", event_type="challenge.cache_hit", extra={"cache_key": key})
        # Slot metadata is re-derived from the current clock, content is not re-checked
        return stored.with_assignment(assignment)

    def _generate(self, assignment: DayAssignment, key: str, today: str, credential: str) -> Challenge:
        prompt = build_challenge_prompt(assignment, today)
        last_error: Optional[AppError] = None

        for attempt in self._policy.attempts():
            self._policy.wait_before(attempt)
            started = time.perf_counter()
            try:
                raw = self._client.complete(credential, prompt, json_response=True)
                content = recover(raw)
            except (ServiceError, MalformedResponse) as exc:
                last_error = exc
                log_event(
                    "warning",
                    "challenge.generation_attempt_failed",
                    event_type="challenge.generation_attempt_failed",
                    error_code=exc.code,
                    extra={
                        "cache_key": key,
                        "attempt": attempt,
                        "max_attempts": self._policy.max_attempts,
                        "latency_bucket": latency_bucket_ms((time.perf_counter() - started) * 1000),
                        "error_message": exc.message,
                    },
                )
                continue

            challenge = Challenge.assemble(content, assignment, key)
            log_event(
                "info",
                "challenge.generated",
                event_type="challenge.generated",
                extra={
                    "cache_key": key,
                    "day_index": assignment.day_index,
                    "attempt": attempt,
                    "latency_bucket": latency_bucket_ms((time.perf_counter() - started) * 1000),
                },
            )
            return challenge

        message = last_error.message if last_error else "no attempts were made"
        log_event(
            "error",
            "challenge.generation_failed",
            event_type="challenge.generation_failed",
            error_code=last_error.code if last_error else None,
            extra={"cache_key": key, "max_attempts": self._policy.max_attempts, "error_message": message},
        )
        raise GenerationFailed(
            f"Failed after {self._policy.max_attempts} attempts: {message}",
            last_error=last_error,
            attempts=self._policy.max_attempts,
        ) from last_error

    def _lock_for(self, key: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock
