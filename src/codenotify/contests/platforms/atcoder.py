"""AtCoder adapter: AtCoder Problems contest index (kenkoooo)."""

from __future__ import annotations

import time

from codenotify.contests.enums import Platform
from codenotify.contests.platforms.base import PlatformAdapter, epoch_seconds
from codenotify.contests.schemas import RawContest


class AtCoderAdapter(PlatformAdapter):
    """Contests that ended within ``atcoder_days_filter`` days, or later."""

    platform = Platform.ATCODER

    async def _fetch(self) -> list[RawContest]:
        payload = await self._request("GET", self.settings.atcoder_contests_url)
        contests = self._expect_list(payload, "contests")

        cutoff = time.time() - self.settings.atcoder_days_filter * 86400
        recent = []
        for c in contests:
            if not isinstance(c, dict):
                continue
            start = epoch_seconds(c.get("start_epoch_second"))
            duration = epoch_seconds(c.get("duration_second")) or 0
            # Unreadable start times are passed on so normalization reports them.
            if start is None or start + duration >= cutoff:
                recent.append(c)
        return recent
