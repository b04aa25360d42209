"""Platform adapters and their registry."""

from __future__ import annotations

import httpx

from codenotify.config import Settings
from codenotify.contests.enums import Platform, parse_platform
from codenotify.contests.platforms.atcoder import AtCoderAdapter
from codenotify.contests.platforms.base import PlatformAdapter, create_http_client
from codenotify.contests.platforms.codechef import CodeChefAdapter
from codenotify.contests.platforms.codeforces import CodeforcesAdapter
from codenotify.contests.platforms.leetcode import LeetCodeAdapter

ADAPTER_CLASSES: dict[Platform, type[PlatformAdapter]] = {
    Platform.CODEFORCES: CodeforcesAdapter,
    Platform.LEETCODE: LeetCodeAdapter,
    Platform.CODECHEF: CodeChefAdapter,
    Platform.ATCODER: AtCoderAdapter,
}


def build_adapters(settings: Settings, client: httpx.AsyncClient) -> dict[Platform, PlatformAdapter]:
    """Instantiate one adapter per enabled platform."""
    adapters: dict[Platform, PlatformAdapter] = {}
    for name in settings.enabled_platforms:
        platform = parse_platform(name)
        adapters[platform] = ADAPTER_CLASSES[platform](client, settings)
    return adapters


__all__ = [
    "ADAPTER_CLASSES",
    "AtCoderAdapter",
    "CodeChefAdapter",
    "CodeforcesAdapter",
    "LeetCodeAdapter",
    "PlatformAdapter",
    "build_adapters",
    "create_http_client",
]
