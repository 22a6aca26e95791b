"""Process-wide service wiring for the HTTP layer.

Routes receive services through FastAPI dependencies so tests can swap them via
`app.dependency_overrides`.
"""
from functools import lru_cache

from fastapi import Depends

from dojo.core.config import settings
from dojo.core.errors import CredentialRequiredError
from dojo.core.retry import RetryPolicy
from dojo.core.store import KeyValueStore, StoreKeys, build_store
from dojo.features.ai.client import CompletionClient
from dojo.features.challenges.service import ChallengeService
from dojo.features.coach.service import SubmissionCoach
from dojo.features.credentials.service import CredentialVault
from dojo.features.streaks.service import ProgressLedger


@lru_cache
def get_store() -> KeyValueStore:
    return build_store(settings)


@lru_cache
def get_keys() -> StoreKeys:
    return StoreKeys(settings.STORE_NAMESPACE)


@lru_cache
def get_completion_client() -> CompletionClient:
    return CompletionClient.from_settings(settings)


@lru_cache
def get_challenge_service() -> ChallengeService:
    return ChallengeService(
        store=get_store(),
        client=get_completion_client(),
        policy=RetryPolicy.from_settings(settings),
        keys=get_keys(),
    )


@lru_cache
def get_ledger() -> ProgressLedger:
    return ProgressLedger(store=get_store(), keys=get_keys())


@lru_cache
def get_coach() -> SubmissionCoach:
    return SubmissionCoach(client=get_completion_client(), ledger=get_ledger())


@lru_cache
def get_vault() -> CredentialVault:
    return CredentialVault(
        store=get_store(),
        client=get_completion_client(),
        keys=get_keys(),
        fallback=settings.GEMINI_API_KEY,
    )


def require_credential(vault: CredentialVault = Depends(get_vault)) -> str:
    credential = vault.load()
    if not credential:
        raise CredentialRequiredError("No Gemini API key configured")
    return credential
