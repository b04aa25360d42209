"""Codeforces adapter: public ``contest.list`` API."""

from __future__ import annotations

import time

from codenotify.contests.enums import Platform
from codenotify.contests.platforms.base import PlatformAdapter, epoch_seconds
from codenotify.contests.schemas import RawContest
from codenotify.errors import UpstreamMalformed

DAY_SECONDS = 86400


class CodeforcesAdapter(PlatformAdapter):
    """Upcoming, running and recently started Codeforces rounds (no gym)."""

    platform = Platform.CODEFORCES

    async def _fetch(self) -> list[RawContest]:
        url = f"{self.settings.codeforces_api_url.rstrip('/')}/contest.list"
        payload = await self._request("GET", url, params={"gym": "false"})

        if not isinstance(payload, dict) or payload.get("status") != "OK":
            comment = payload.get("comment") if isinstance(payload, dict) else None
            raise UpstreamMalformed(self.platform.value, f"unexpected response status: {comment or payload!r:.200}")
        contests = self._expect_list(payload.get("result"), "contests")

        cutoff = time.time() - self.settings.contest_lookback_days * DAY_SECONDS
        return [c for c in contests if isinstance(c, dict) and _in_window(c, cutoff)]


def _in_window(contest: RawContest, cutoff: float) -> bool:
    if contest.get("phase") != "FINISHED":
        return True
    start = epoch_seconds(contest.get("startTimeSeconds"))
    # Unreadable start times are passed on so normalization reports them.
    return start is None or start >= cutoff
