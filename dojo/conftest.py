# dojo/conftest.py
import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Union

import pytest

# Add project root to PYTHONPATH
PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from dojo.core.retry import RetryPolicy  # noqa: E402
from dojo.core.store import InMemoryStore, StoreKeys  # noqa: E402
from dojo.features.challenges.service import ChallengeService  # noqa: E402
from dojo.features.coach.service import SubmissionCoach  # noqa: E402
from dojo.features.credentials.service import CredentialVault  # noqa: E402
from dojo.features.streaks.service import ProgressLedger  # noqa: E402


# 2026-02-25 12:00 UTC -> day index 421
FROZEN_NOW = datetime(2026, 2, 25, 12, 0, tzinfo=timezone.utc)

VALID_CHALLENGE = {
    "title": "Whales Quietly Drain Exchanges",
    "problem": "Over 72 hours, 14 wallets withdrew 38,200 BTC from Binance. Exchange reserves fell 2.1%. What does this signal?",
    "hints": ["Check wallet age", "Compare to OTC flows", "Look at funding rates"],
    "keyMetrics": ["Exchange reserves", "Netflow", "Whale ratio", "SOPR"],
    "tools": ["Glassnode", "Arkham", "CryptoQuant"],
    "teachingPoint": "Sustained exchange outflows from old wallets usually mean accumulation, not distribution.",
}


class FakeCompleter:
    """Scripted stand-in for CompletionClient.

    Each call pops the next scripted item; strings are returned, exceptions
    are raised. Calls are recorded for assertions.
    """

    def __init__(self, script: Optional[List[Union[str, Exception]]] = None):
        self.script: List[Union[str, Exception]] = list(script or [])
        self.calls: List[dict] = []

    def queue(self, *items: Union[str, Exception]) -> "FakeCompleter":
        self.script.extend(items)
        return self

    def complete(self, credential, prompt, system_instruction=None, *, json_response=False):
        self.calls.append(
            {
                "credential": credential,
                "prompt": prompt,
                "system_instruction": system_instruction,
                "json_response": json_response,
            }
        )
        if not self.script:
            raise AssertionError("FakeCompleter called more times than scripted")
        item = self.script.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


@pytest.fixture
def frozen_now():
    return FROZEN_NOW


@pytest.fixture
def valid_payload():
    return dict(VALID_CHALLENGE)


@pytest.fixture
def valid_json(valid_payload):
    return json.dumps(valid_payload)


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def keys():
    return StoreKeys("od")


@pytest.fixture
def completer():
    return FakeCompleter()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def policy(sleeps):
    return RetryPolicy(max_attempts=3, backoff_seconds=1.0, sleep=sleeps.append)


@pytest.fixture
def challenge_service(store, completer, policy, keys):
    return ChallengeService(store=store, client=completer, policy=policy, keys=keys)


@pytest.fixture
def ledger(store, keys):
    return ProgressLedger(store=store, keys=keys)


@pytest.fixture
def coach(completer, ledger):
    return SubmissionCoach(client=completer, ledger=ledger)


@pytest.fixture
def vault(store, completer, keys):
    return CredentialVault(store=store, client=completer, keys=keys)


@pytest.fixture
def challenge(challenge_service, completer, valid_json, frozen_now):
    completer.queue(valid_json)
    result = challenge_service.obtain(0, "AIza-test", now=frozen_now)
    completer.calls.clear()
    return result
