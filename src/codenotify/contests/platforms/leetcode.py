"""LeetCode adapter: public GraphQL endpoint."""

from __future__ import annotations

import time

from codenotify.contests.enums import Platform
from codenotify.contests.platforms.base import PlatformAdapter, epoch_seconds
from codenotify.contests.schemas import RawContest
from codenotify.errors import UpstreamMalformed

CONTESTS_QUERY = """
query allContests {
  topTwoContests {
    title
    titleSlug
    startTime
    duration
    isVirtual
  }
  allContests {
    title
    titleSlug
    startTime
    duration
    isVirtual
  }
}
"""

LEETCODE_HEADERS = {
    "Content-Type": "application/json",
    "Origin": "https://leetcode.com",
    "Referer": "https://leetcode.com",
}


class LeetCodeAdapter(PlatformAdapter):
    """Weekly and biweekly contests within the lookback window or later."""

    platform = Platform.LEETCODE

    async def _fetch(self) -> list[RawContest]:
        payload = await self._request(
            "POST",
            self.settings.leetcode_graphql_url,
            json={"query": CONTESTS_QUERY, "operationName": "allContests"},
            headers=LEETCODE_HEADERS,
        )
        if not isinstance(payload, dict):
            raise UpstreamMalformed(self.platform.value, "GraphQL response is not an object")
        if payload.get("errors"):
            raise UpstreamMalformed(self.platform.value, f"GraphQL errors: {payload['errors']!r:.200}")
        data = payload.get("data") or {}
        upcoming = self._expect_list(data.get("topTwoContests") or [], "upcoming contests")
        contests = self._expect_list(data.get("allContests"), "contests")

        # topTwoContests can list rounds allContests does not have yet.
        by_slug: dict[str, RawContest] = {}
        for c in (*contests, *upcoming):
            if isinstance(c, dict):
                by_slug[str(c.get("titleSlug") or id(c))] = c

        cutoff = time.time() - self.settings.contest_lookback_days * 86400
        recent = []
        for c in by_slug.values():
            if c.get("isVirtual"):
                continue
            start = epoch_seconds(c.get("startTime"))
            if start is None or start >= cutoff:
                recent.append(c)
        return recent
