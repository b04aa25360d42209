"""Shared contest vocabularies."""

from __future__ import annotations

from enum import StrEnum


class Platform(StrEnum):
    CODEFORCES = "codeforces"
    LEETCODE = "leetcode"
    CODECHEF = "codechef"
    ATCODER = "atcoder"


class ContestPhase(StrEnum):
    BEFORE = "BEFORE"
    CODING = "CODING"
    FINISHED = "FINISHED"


class ContestType(StrEnum):
    # Codeforces
    CF = "CF"
    IOI = "IOI"
    ICPC = "ICPC"
    # LeetCode
    WEEKLY = "WEEKLY"
    BIWEEKLY = "BIWEEKLY"
    # CodeChef
    STARTERS = "STARTERS"
    LONG = "LONG"
    COOK_OFF = "COOK_OFF"
    LUNCH_TIME = "LUNCH_TIME"
    # AtCoder
    ABC = "ABC"
    ARC = "ARC"
    AGC = "AGC"
    AHC = "AHC"
    OTHER = "OTHER"


class DifficultyLevel(StrEnum):
    BEGINNER = "BEGINNER"
    EASY = "EASY"
    MEDIUM = "MEDIUM"
    HARD = "HARD"
    EXPERT = "EXPERT"


def parse_platform(name: str) -> Platform:
    """Resolve a platform name case-insensitively. Raises ValueError if unknown."""
    try:
        return Platform(name.strip().lower())
    except ValueError:
        valid = ", ".join(p.value for p in Platform)
        raise ValueError(f"Unknown platform: {name}. Must be one of {valid}") from None
