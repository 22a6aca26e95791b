from __future__ import annotations

import logging
from typing import Optional

from dojo.core.errors import ValidationError
from dojo.core.store import KeyValueStore, StoreKeys
from dojo.features.ai.prompts import CREDENTIAL_PROBE_PROMPT
from dojo.features.ai.client import Completer

logger = logging.getLogger("dojo")

KEY_PREFIX = "AI"


class CredentialVault:
    """The model credential, stored as an opaque string. Never logged."""

    def __init__(self, *, store: KeyValueStore, client: Completer, keys: Optional[StoreKeys] = None, fallback: Optional[str] = None):
        self._store = store
        self._client = client
        self._keys = keys or StoreKeys()
        self._fallback = fallback

    def load(self) -> Optional[str]:
        return self._store.get(self._keys.credential) or self._fallback or None

    def save(self, credential: str) -> None:
        self._store.set(self._keys.credential, credential)

    def clear(self) -> None:
        self._store.delete(self._keys.credential)

    def verify_and_save(self, credential: str) -> None:
        """Probe the service with the key and store it if the call succeeds.

        Raises:
            ValidationError: the key does not look like a Gemini key
            ServiceError: the probe call failed; nothing is stored
        """
        key = (credential or "").strip()
        if not key.startswith(KEY_PREFIX):
            raise ValidationError(f"Key should start with '{KEY_PREFIX}...', check your Gemini API key")
        self._client.complete(key, CREDENTIAL_PROBE_PROMPT)
        self.save(key)
        logger.info("credential.saved")
