import json
import logging
import threading
from datetime import timedelta

import pytest

from dojo.core.errors import GenerationFailed, MalformedResponse, ServiceError, ValidationError
from dojo.core.retry import RetryPolicy
from dojo.core.store import InMemoryStore
from dojo.features.challenges.service import ChallengeService


def _challenge_writes(store):
    return [key for key, _ in store.writes if key.startswith("od_challenge_")]


def test_cache_miss_generates_and_stores_once(challenge_service, completer, store, valid_json, frozen_now, sleeps):
    completer.queue(valid_json)

    result = challenge_service.obtain(0, "AIza-k", now=frozen_now)

    assert result.title == json.loads(valid_json)["title"]
    assert result.day_index == 421
    assert result.category == "ETH Fundamentals"
    assert result.category_id == "eth"
    assert result.difficulty.value == "Beginner"
    assert result.cache_key == "2026-02-25"
    assert _challenge_writes(store) == ["od_challenge_2026-02-25"]
    assert len(completer.calls) == 1
    assert completer.calls[0]["json_response"] is True
    assert completer.calls[0]["credential"] == "AIza-k"
    assert sleeps == []


def test_cache_hit_makes_no_model_call(challenge_service, completer, store, challenge, frozen_now):
    writes_before = len(store.writes)

    again = challenge_service.obtain(0, "AIza-k", now=frozen_now)

    assert again == challenge
    assert completer.calls == []
    assert len(store.writes) == writes_before


def test_retry_then_success_caches_exactly_once(challenge_service, completer, store, valid_json, frozen_now, sleeps):
    completer.queue(
        ServiceError("service error 500", status=500),
        "this is not json at all",
        valid_json,
    )

    result = challenge_service.obtain(0, "AIza-k", now=frozen_now)

    assert result.title
    assert len(completer.calls) == 3
    assert sleeps == [1.0, 1.0]
    assert _challenge_writes(store) == ["od_challenge_2026-02-25"]


def test_exhausted_attempts_raise_and_cache_nothing(challenge_service, completer, store, frozen_now, sleeps):
    completer.queue(
        ServiceError("service unreachable: ConnectTimeout"),
        MalformedResponse("Failed to parse JSON: boom"),
        "{still not json",
    )

    with pytest.raises(GenerationFailed) as exc:
        challenge_service.obtain(0, "AIza-k", now=frozen_now)

    assert exc.value.attempts == 3
    assert exc.value.message.startswith("Failed after 3 attempts: Failed to parse JSON:")
    assert isinstance(exc.value.last_error, MalformedResponse)
    assert exc.value.status_code == 503
    assert store.writes == []
    assert sleeps == [1.0, 1.0]


def test_attempt_budget_follows_policy(store, completer, keys, frozen_now):
    sleeps = []
    service = ChallengeService(
        store=store,
        client=completer,
        policy=RetryPolicy(max_attempts=1, backoff_seconds=5.0, sleep=sleeps.append),
        keys=keys,
    )
    completer.queue(ServiceError("quota exceeded", status=429))

    with pytest.raises(GenerationFailed) as exc:
        service.obtain(0, "AIza-k", now=frozen_now)

    assert exc.value.message == "Failed after 1 attempts: quota exceeded"
    assert len(completer.calls) == 1
    assert sleeps == []


def test_missing_field_response_is_retried(challenge_service, completer, valid_payload, valid_json, frozen_now):
    incomplete = {k: v for k, v in valid_payload.items() if k != "tools"}
    completer.queue(json.dumps(incomplete), valid_json)

    result = challenge_service.obtain(0, "AIza-k", now=frozen_now)

    assert result.tools == valid_payload["tools"]
    assert len(completer.calls) == 2


def test_other_offsets_use_day_index_keys(challenge_service, completer, store, valid_json, frozen_now):
    completer.queue(valid_json)

    result = challenge_service.obtain(1, "AIza-k", now=frozen_now)

    assert result.cache_key == "offset_422"
    assert result.day_index == 422
    assert result.category_id == "whale"
    assert store.get("od_challenge_offset_422") is not None
    assert "Day 422" in completer.calls[0]["prompt"]


def test_cached_metadata_is_recomputed(store, completer, keys, valid_payload, frozen_now):
    stale = dict(
        valid_payload,
        category="Something Else",
        categoryId="nft",
        difficulty="Advanced",
        dayIndex=7,
        cacheKey="2026-02-25",
    )
    store.set("od_challenge_2026-02-25", json.dumps(stale))
    service = ChallengeService(store=store, client=completer, keys=keys)

    result = service.obtain(0, "AIza-k", now=frozen_now)

    assert completer.calls == []
    assert result.title == valid_payload["title"]
    assert result.category == "ETH Fundamentals"
    assert result.category_id == "eth"
    assert result.difficulty.value == "Beginner"
    assert result.day_index == 421


def test_unreadable_cache_entry_is_regenerated(challenge_service, completer, store, valid_json, frozen_now):
    store.set("od_challenge_2026-02-25", "{corrupted")
    store.writes.clear()
    completer.queue(valid_json)

    result = challenge_service.obtain(0, "AIza-k", now=frozen_now)

    assert result.title
    assert len(completer.calls) == 1
    assert _challenge_writes(store) == ["od_challenge_2026-02-25"]


def test_stored_record_uses_camel_case(challenge, store):
    stored = json.loads(store.get("od_challenge_2026-02-25"))
    assert stored["keyMetrics"] == challenge.key_metrics
    assert stored["teachingPoint"] == challenge.teaching_point
    assert stored["dayIndex"] == 421
    assert stored["categoryId"] == "eth"
    assert stored["cacheKey"] == "2026-02-25"


def test_new_day_uses_new_cache_slot(challenge_service, completer, store, challenge, valid_json, frozen_now):
    completer.queue(valid_json)

    tomorrow = challenge_service.obtain(0, "AIza-k", now=frozen_now + timedelta(days=1))

    assert tomorrow.cache_key == "2026-02-26"
    assert tomorrow.day_index == 422
    assert len(completer.calls) == 1


def test_peek_never_generates(challenge_service, completer, challenge, frozen_now):
    assert challenge_service.peek(0, now=frozen_now) == challenge
    assert challenge_service.peek(3, now=frozen_now) is None
    assert completer.calls == []


def test_separate_stores_do_not_share_cache(completer, keys, valid_json, frozen_now):
    first = ChallengeService(store=InMemoryStore(), client=completer, keys=keys)
    second = ChallengeService(store=InMemoryStore(), client=completer, keys=keys)
    completer.queue(valid_json, valid_json)

    first.obtain(0, "AIza-k", now=frozen_now)
    second.obtain(0, "AIza-k", now=frozen_now)

    assert len(completer.calls) == 2


def test_offset_before_first_day_is_rejected_without_model_call(challenge_service, completer, store, valid_json, frozen_now):
    completer.queue(valid_json, valid_json)

    for _ in range(2):
        with pytest.raises(ValidationError) as exc:
            challenge_service.obtain(-500, "AIza-k", now=frozen_now)
        assert exc.value.status_code == 400

    assert completer.calls == []
    assert store.writes == []


def test_first_challenge_day_is_still_served(challenge_service, completer, valid_json, frozen_now):
    completer.queue(valid_json)

    result = challenge_service.obtain(-420, "AIza-k", now=frozen_now)

    assert result.day_index == 1
    assert result.cache_key == "offset_1"


class CountingStore(InMemoryStore):
    """Signals once the challenge key has been read a given number of times."""

    def __init__(self, key, reads_needed):
        super().__init__()
        self.key = key
        self.reads_needed = reads_needed
        self.reads = 0
        self.reached = threading.Event()

    def get(self, key):
        value = super().get(key)
        if key == self.key:
            self.reads += 1
            if self.reads >= self.reads_needed:
                self.reached.set()
        return value


def test_concurrent_callers_share_one_generation(keys, valid_json, frozen_now):
    # first caller: miss + re-check under the lock; second caller: one miss before blocking
    store = CountingStore("od_challenge_2026-02-25", reads_needed=3)
    in_flight = threading.Event()
    release = threading.Event()
    calls = []

    class BlockingCompleter:
        def complete(self, credential, prompt, system_instruction=None, *, json_response=False):
            calls.append(prompt)
            in_flight.set()
            assert release.wait(timeout=5)
            return valid_json

    service = ChallengeService(
        store=store,
        client=BlockingCompleter(),
        policy=RetryPolicy(sleep=lambda seconds: None),
        keys=keys,
    )
    results = []
    errors = []

    def worker():
        try:
            results.append(service.obtain(0, "AIza-k", now=frozen_now))
        except Exception as exc:  # surfaced through the assertion below
            errors.append(exc)

    first = threading.Thread(target=worker)
    second = threading.Thread(target=worker)
    first.start()
    assert in_flight.wait(timeout=5)
    second.start()
    assert store.reached.wait(timeout=5)
    release.set()
    first.join(timeout=5)
    second.join(timeout=5)

    assert errors == []
    assert len(calls) == 1
    assert _challenge_writes(store) == ["od_challenge_2026-02-25"]
    assert len(results) == 2
    assert results[0] == results[1]


def test_key_locks_are_released_after_generation(challenge_service, completer, valid_json, frozen_now):
    completer.queue(valid_json, valid_json, valid_json)

    for offset in (0, 1, 2):
        challenge_service.obtain(offset, "AIza-k", now=frozen_now)

    assert len(challenge_service._locks) == 0


def test_generation_log_carries_latency_bucket(challenge_service, completer, valid_json, frozen_now, caplog):
    completer.queue(valid_json)

    with caplog.at_level(logging.INFO, logger="dojo"):
        challenge_service.obtain(0, "AIza-k", now=frozen_now)

    [record] = [r for r in caplog.records if r.getMessage() == "challenge.generated"]
    assert record.latency_bucket == "<100ms"
    assert record.day_index == 421
