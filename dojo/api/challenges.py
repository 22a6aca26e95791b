from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from dojo.api.deps import get_challenge_service, get_coach, require_credential
from dojo.features.challenges.service import ChallengeService
from dojo.features.coach.service import SubmissionCoach, require_submission
from dojo.features.schedule import service as schedule

router = APIRouter()


class SubmissionRequest(BaseModel):
    offset: int = 0
    analysis: str
    conclusion: str


@router.get("/v1/challenges/today")
def get_today_challenge(
    offset: int = Query(0),
    credential: str = Depends(require_credential),
    service: ChallengeService = Depends(get_challenge_service),
):
    """Today's (or an offset day's) challenge, generated on first request."""
    challenge = service.obtain(offset, credential)
    return challenge.model_dump(mode="json", by_alias=True)


@router.get("/v1/challenges/preview")
def preview_challenge(offset: int = Query(1)):
    """Slot metadata for a day without generating anything."""
    assignment = schedule.require_scheduled(schedule.assign(offset))
    return {
        "category": assignment.category.label,
        "categoryId": assignment.category.id,
        "difficulty": assignment.difficulty.value,
        "dayIndex": assignment.day_index,
        "cacheKey": schedule.cache_key(offset),
    }


@router.post("/v1/challenges/feedback")
def submit_for_feedback(
    req: SubmissionRequest,
    credential: str = Depends(require_credential),
    service: ChallengeService = Depends(get_challenge_service),
    coach: SubmissionCoach = Depends(get_coach),
):
    require_submission(req.analysis, req.conclusion)
    challenge = service.obtain(req.offset, credential)
    feedback = coach.evaluate(challenge, req.analysis, req.conclusion, credential)
    return {"feedback": feedback, "dayIndex": challenge.day_index}


@router.post("/v1/challenges/thread")
def generate_thread(
    req: SubmissionRequest,
    credential: str = Depends(require_credential),
    service: ChallengeService = Depends(get_challenge_service),
    coach: SubmissionCoach = Depends(get_coach),
):
    """Write the share thread and advance the streak."""
    require_submission(req.analysis, req.conclusion)
    challenge = service.obtain(req.offset, credential)
    result = coach.generate_thread(challenge, req.analysis, req.conclusion, credential)
    return result.model_dump(mode="json", by_alias=True)
