"""
Gemini completion client.

One `complete` call issues exactly one `generateContent` request. Retrying is
the caller's concern.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Protocol

import httpx

from dojo.core.config import Settings, settings
from dojo.core.errors import ServiceError

logger = logging.getLogger("dojo")


class Completer(Protocol):
    """Anything that turns a prompt into raw text in one call."""

    def complete(
        self,
        credential: str,
        prompt: str,
        system_instruction: Optional[str] = None,
        *,
        json_response: bool = False,
    ) -> str: ...


class CompletionClient:
    def __init__(
        self,
        *,
        model: str = "gemini-2.5-flash",
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        temperature: float = 0.7,
        max_output_tokens: int = 2000,
        timeout: float = 60.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings_obj: Optional[Settings] = None, **kwargs) -> "CompletionClient":
        cfg = settings_obj or settings
        return cls(
            model=cfg.GEMINI_MODEL,
            base_url=cfg.GEMINI_BASE_URL,
            temperature=cfg.GEMINI_TEMPERATURE,
            max_output_tokens=cfg.GEMINI_MAX_OUTPUT_TOKENS,
            timeout=cfg.GEMINI_TIMEOUT_SECONDS,
            **kwargs,
        )

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    def build_body(self, prompt: str, system_instruction: Optional[str] = None, json_response: bool = False) -> Dict[str, Any]:
        generation_config: Dict[str, Any] = {
            "temperature": self.temperature,
            "maxOutputTokens": self.max_output_tokens,
        }
        if json_response:
            generation_config["responseMimeType"] = "application/json"

        body: Dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": generation_config,
        }
        if system_instruction:
            body["systemInstruction"] = {"parts": [{"text": system_instruction}]}
        return body

    def complete(
        self,
        credential: str,
        prompt: str,
        system_instruction: Optional[str] = None,
        *,
        json_response: bool = False,
    ) -> str:
        """Return the first text part of the first candidate, or "".

        Raises:
            ServiceError: non-2xx status or unreachable service
        """
        body = self.build_body(prompt, system_instruction, json_response)
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.post(self.endpoint, params={"key": credential}, json=body)
        except httpx.HTTPError as exc:
            raise ServiceError(f"service unreachable: {exc.__class__.__name__}") from exc

        if response.status_code >= 300:
            raise ServiceError(_error_message(response), status=response.status_code)

        try:
            data = response.json()
        except ValueError as exc:
            raise ServiceError(f"service returned a non-JSON body (status {response.status_code})", status=response.status_code) from exc

        return _first_text(data)


def _error_message(response: httpx.Response) -> str:
    try:
        envelope = response.json()
    except ValueError:
        envelope = None
    if isinstance(envelope, dict):
        error = envelope.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
    return f"service error {response.status_code}"


def _first_text(data: Any) -> str:
    if not isinstance(data, dict):
        return ""
    candidates = data.get("candidates") or []
    if not candidates or not isinstance(candidates[0], dict):
        return ""
    content = candidates[0].get("content")
    if not isinstance(content, dict):
        return ""
    parts = content.get("parts") or []
    if not parts or not isinstance(parts[0], dict):
        return ""
    text = parts[0].get("text")
    return text if isinstance(text, str) else ""
