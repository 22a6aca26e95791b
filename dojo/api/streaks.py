from __future__ import annotations

from fastapi import APIRouter, Depends

from dojo.api.deps import get_ledger
from dojo.features.schedule.service import utc_today
from dojo.features.streaks.service import ProgressLedger

router = APIRouter()


@router.get("/v1/streaks/current")
def get_current_streak(ledger: ProgressLedger = Depends(get_ledger)):
    """Return the current streak state."""
    return ledger.state(utc_today()).model_dump(mode="json", by_alias=True)


@router.get("/v1/streaks/history")
def get_streak_history(ledger: ProgressLedger = Depends(get_ledger)):
    return {"history": [entry.model_dump(mode="json", by_alias=True) for entry in ledger.history()]}
