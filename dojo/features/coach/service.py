"""Submission feedback and thread generation.

Single attempt each, no cache, no retry: service and parse errors go straight
back to the caller.
"""
from __future__ import annotations

from datetime import date
from typing import List, Optional

from dojo.core.errors import MalformedResponse, ValidationError
from dojo.core.logging import log_event
from dojo.features.ai.prompts import THREAD_DELIMITER, build_feedback_prompt, build_thread_prompt
from dojo.features.ai.client import Completer
from dojo.features.schedule.service import utc_today
from dojo.features.streaks.service import ProgressLedger
from dojo.models.challenge import Challenge
from dojo.models.progress import ThreadResult


def split_thread(raw: str) -> List[str]:
    return [segment.strip() for segment in raw.split(THREAD_DELIMITER) if segment.strip()]


def require_submission(analysis: str, conclusion: str) -> None:
    if not (analysis or "").strip():
        raise ValidationError("analysis must not be empty")
    if not (conclusion or "").strip():
        raise ValidationError("conclusion must not be empty")


class SubmissionCoach:
    def __init__(self, *, client: Completer, ledger: ProgressLedger):
        self._client = client
        self._ledger = ledger

    def evaluate(self, challenge: Challenge, analysis: str, conclusion: str, credential: str) -> str:
        """Three-section feedback on a submission.

        Raises:
            ValidationError: blank analysis or conclusion
            ServiceError: the model call failed
            MalformedResponse: the model returned no text
        """
        require_submission(analysis, conclusion)
        text = self._client.complete(credential, build_feedback_prompt(challenge, analysis, conclusion))
        if not text.strip():
            raise MalformedResponse("empty feedback response")
        return text.strip()

    def generate_thread(
        self,
        challenge: Challenge,
        analysis: str,
        conclusion: str,
        credential: str,
        *,
        today: Optional[date] = None,
    ) -> ThreadResult:
        """Write the thread, then record the completion in the ledger.

        The ledger is touched only when at least one segment came back.
        """
        require_submission(analysis, conclusion)
        raw = self._client.complete(
            credential, build_thread_prompt(challenge, analysis, conclusion, challenge.day_index)
        )
        segments = split_thread(raw)
        if not segments:
            raise MalformedResponse("thread response contained no segments")

        streak = self._ledger.record_completion(
            today=today or utc_today(),
            day_index=challenge.day_index,
            challenge=challenge,
            analysis=analysis,
        )
        log_event(
            "info",
            "thread.generated",
            event_type="thread.generated",
            extra={"day_index": challenge.day_index, "streak": streak.count},
        )
        return ThreadResult(segments=segments, streak=streak)
