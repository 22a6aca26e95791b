"""
Daily challenge warm-up.

Generates (or confirms the cache already holds) the challenge for a day offset
so the first visitor never waits on the model. Meant for cron, shortly after
00:00 UTC. Only useful with a shared store (STORE_BACKEND=redis).

Usage:
    python -m dojo.scripts.generate_daily --offset 0
"""
from __future__ import annotations

import argparse
import sys
from typing import Optional, Sequence

from dojo.api.deps import get_challenge_service, get_vault
from dojo.core.config import settings
from dojo.core.errors import GenerationFailed
from dojo.core.logging import configure_logging


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Generate and cache a daily challenge")
    parser.add_argument("--offset", type=int, default=0, help="Day offset from today (UTC)")
    parser.add_argument("--days", type=int, default=1, help="Number of consecutive days to warm, starting at --offset")
    args = parser.parse_args(argv)

    configure_logging(settings.ENV)

    credential = get_vault().load()
    if not credential:
        print("[daily] No Gemini API key stored and GEMINI_API_KEY unset. Exiting.")
        return 1

    service = get_challenge_service()
    failures = 0
    for offset in range(args.offset, args.offset + max(1, args.days)):
        try:
            challenge = service.obtain(offset, credential)
        except GenerationFailed as exc:
            failures += 1
            print(f"[daily] offset={offset} failed: {exc.message}")
            continue
        print(f"[daily] offset={offset} day={challenge.day_index} {challenge.category} / {challenge.difficulty.value}: {challenge.title}")

    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
