"""CodeChef adapter: contest list API (present, future and recent past)."""

from __future__ import annotations

from codenotify.contests.enums import Platform
from codenotify.contests.platforms.base import PlatformAdapter
from codenotify.contests.schemas import RawContest
from codenotify.errors import UpstreamMalformed


class CodeChefAdapter(PlatformAdapter):
    platform = Platform.CODECHEF

    async def _fetch(self) -> list[RawContest]:
        payload = await self._request(
            "GET",
            self.settings.codechef_api_url,
            params={"sort_type": "start", "sort_by": "DESC", "mode": "all"},
        )
        if not isinstance(payload, dict) or payload.get("status") != "success":
            raise UpstreamMalformed(self.platform.value, "unexpected response status")

        present = self._expect_list(payload.get("present_contests") or [], "present contests")
        future = self._expect_list(payload.get("future_contests") or [], "future contests")
        past = self._expect_list(payload.get("past_contests") or [], "past contests")
        past = past[: self.settings.codechef_past_contests_limit]

        return [c for c in (*future, *present, *past) if isinstance(c, dict)]
