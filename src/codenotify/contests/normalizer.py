"""Map platform-native contest payloads into the shared contest shape.

Pure functions only, no I/O. Every extractor returns a dict of shared
field names; ``normalize`` then fills derived fields (duration, end time,
phase, difficulty) and validates identity fields.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

from codenotify.contests.enums import ContestPhase, ContestType, DifficultyLevel, Platform
from codenotify.contests.schemas import NormalizedContest, RawContest
from codenotify.errors import NormalizationError

CODEFORCES_CONTEST_URL = "https://codeforces.com/contest/"
CODEFORCES_REGISTRATION_URL = "https://codeforces.com/contestRegistration/"
LEETCODE_CONTEST_URL = "https://leetcode.com/contest/"
CODECHEF_CONTEST_URL = "https://www.codechef.com/"
ATCODER_CONTEST_URL = "https://atcoder.jp/contests/"

# CodeChef publishes legacy dates in IST without an offset.
IST = timezone(timedelta(hours=5, minutes=30))

# Stable per-contest fields only; relativeTimeSeconds changes on every request.
CODEFORCES_METADATA_KEYS = ("frozen", "preparedBy", "kind", "icpcRegion", "season")

CODEFORCES_PHASES: dict[str, ContestPhase] = {
    "BEFORE": ContestPhase.BEFORE,
    "CODING": ContestPhase.CODING,
    "PENDING_SYSTEM_TEST": ContestPhase.FINISHED,
    "SYSTEM_TEST": ContestPhase.FINISHED,
    "FINISHED": ContestPhase.FINISHED,
}

TYPE_DIFFICULTY: dict[ContestType, DifficultyLevel] = {
    ContestType.WEEKLY: DifficultyLevel.MEDIUM,
    ContestType.BIWEEKLY: DifficultyLevel.MEDIUM,
    ContestType.STARTERS: DifficultyLevel.MEDIUM,
    ContestType.LONG: DifficultyLevel.MEDIUM,
    ContestType.COOK_OFF: DifficultyLevel.HARD,
    ContestType.LUNCH_TIME: DifficultyLevel.MEDIUM,
    ContestType.ABC: DifficultyLevel.EASY,
    ContestType.ARC: DifficultyLevel.HARD,
    ContestType.AGC: DifficultyLevel.EXPERT,
    ContestType.AHC: DifficultyLevel.MEDIUM,
}

# Checked in order; combined divisions before single ones.
CODEFORCES_DIVISIONS: list[tuple[str, DifficultyLevel]] = [
    ("div. 1 + div. 2", DifficultyLevel.HARD),
    ("div. 1", DifficultyLevel.EXPERT),
    ("div. 2", DifficultyLevel.MEDIUM),
    ("div. 3", DifficultyLevel.EASY),
    ("div. 4", DifficultyLevel.BEGINNER),
    ("educational", DifficultyLevel.MEDIUM),
    ("global round", DifficultyLevel.HARD),
]


def compute_phase(start_time: datetime, end_time: datetime, now: datetime) -> ContestPhase:
    """Phase as a pure function of the contest window and the current time."""
    if now < start_time:
        return ContestPhase.BEFORE
    if now < end_time:
        return ContestPhase.CODING
    return ContestPhase.FINISHED


def parse_timestamp(value: Any) -> datetime | None:
    """Parse epoch seconds, ISO-8601 strings or datetimes into aware UTC datetimes."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, bool):
        raise ValueError(f"Not a timestamp: {value!r}")
    elif isinstance(value, int | float):
        dt = datetime.fromtimestamp(value, tz=timezone.utc)
    elif isinstance(value, str):
        text = value.strip()
        if text.lstrip("-").isdigit():
            dt = datetime.fromtimestamp(int(text), tz=timezone.utc)
        else:
            dt = datetime.fromisoformat(text)
    else:
        raise ValueError(f"Not a timestamp: {value!r}")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _to_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def _clean_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


# ---------------------------------------------------------------------------
# Per-platform extractors
# ---------------------------------------------------------------------------


def _codeforces_difficulty(name: str) -> DifficultyLevel | None:
    lowered = name.lower()
    for marker, level in CODEFORCES_DIVISIONS:
        if marker in lowered:
            return level
    return None


def _extract_codeforces(raw: RawContest) -> dict[str, Any]:
    contest_id = _clean_str(raw.get("id"))
    start = raw.get("startTimeSeconds")
    duration_seconds = _to_int(raw.get("durationSeconds"))
    cf_type = str(raw.get("type") or "").upper()
    name = _clean_str(raw.get("name")) or ""
    location = ", ".join(p for p in (_clean_str(raw.get("city")), _clean_str(raw.get("country"))) if p)
    return {
        "platform_id": contest_id,
        "name": name,
        "start_time": start,
        "duration_minutes": duration_seconds // 60 if duration_seconds is not None else None,
        "phase": CODEFORCES_PHASES.get(str(raw.get("phase") or "").upper()),
        "type": ContestType(cf_type) if cf_type in {"CF", "IOI", "ICPC"} else ContestType.OTHER,
        "difficulty": _codeforces_difficulty(name),
        "description": _clean_str(raw.get("description")),
        "location": location or None,
        "website_url": _clean_str(raw.get("websiteUrl"))
        or (f"{CODEFORCES_CONTEST_URL}{contest_id}" if contest_id else None),
        "registration_url": f"{CODEFORCES_REGISTRATION_URL}{contest_id}" if contest_id else None,
        "platform_metadata": {k: raw[k] for k in CODEFORCES_METADATA_KEYS if k in raw},
    }


def _leetcode_type(slug: str) -> ContestType:
    if "biweekly" in slug:
        return ContestType.BIWEEKLY
    if "weekly" in slug:
        return ContestType.WEEKLY
    return ContestType.OTHER


def _extract_leetcode(raw: RawContest) -> dict[str, Any]:
    slug = _clean_str(raw.get("titleSlug"))
    duration_seconds = _to_int(raw.get("duration"))
    return {
        "platform_id": slug,
        "name": _clean_str(raw.get("title")) or "",
        "start_time": raw.get("startTime"),
        "duration_minutes": duration_seconds // 60 if duration_seconds is not None else None,
        "type": _leetcode_type((slug or "").lower()),
        "description": _clean_str(raw.get("description")),
        "website_url": f"{LEETCODE_CONTEST_URL}{slug}" if slug else None,
        "registration_url": f"{LEETCODE_CONTEST_URL}{slug}" if slug else None,
        "platform_metadata": {k: raw[k] for k in ("isVirtual", "cardImg", "originStartTime") if k in raw},
    }


def _codechef_type(name: str) -> ContestType:
    lowered = name.lower()
    if "starters" in lowered:
        return ContestType.STARTERS
    if "cook-off" in lowered or "cook off" in lowered or "cookoff" in lowered:
        return ContestType.COOK_OFF
    if "lunchtime" in lowered or "lunch time" in lowered:
        return ContestType.LUNCH_TIME
    if "long" in lowered:
        return ContestType.LONG
    return ContestType.OTHER


def _parse_codechef_date(iso_value: Any, legacy_value: Any) -> datetime | None:
    if iso_value:
        return parse_timestamp(iso_value)
    if legacy_value:
        # e.g. "31 Jan 2024  20:00:00"
        text = " ".join(str(legacy_value).split())
        return datetime.strptime(text, "%d %b %Y %H:%M:%S").replace(tzinfo=IST).astimezone(timezone.utc)
    return None


def _extract_codechef(raw: RawContest) -> dict[str, Any]:
    code = _clean_str(raw.get("contest_code"))
    name = _clean_str(raw.get("contest_name")) or ""
    return {
        "platform_id": code,
        "name": name,
        "start_time": _parse_codechef_date(raw.get("contest_start_date_iso"), raw.get("contest_start_date")),
        "end_time": _parse_codechef_date(raw.get("contest_end_date_iso"), raw.get("contest_end_date")),
        "duration_minutes": _to_int(raw.get("contest_duration")),
        "type": _codechef_type(name),
        "participant_count": _to_int(raw.get("distinct_users")),
        "website_url": f"{CODECHEF_CONTEST_URL}{code}" if code else None,
        "registration_url": f"{CODECHEF_CONTEST_URL}{code}" if code else None,
        "platform_metadata": {k: raw[k] for k in ("contest_type", "status") if k in raw},
    }


def _atcoder_type(contest_id: str) -> ContestType:
    prefix = contest_id[:3].upper()
    if prefix in {"ABC", "ARC", "AGC", "AHC"}:
        return ContestType(prefix)
    return ContestType.OTHER


def _extract_atcoder(raw: RawContest) -> dict[str, Any]:
    contest_id = _clean_str(raw.get("id"))
    duration_seconds = _to_int(raw.get("duration_second"))
    metadata = {}
    if _clean_str(raw.get("rate_change")):
        metadata["rateChange"] = raw["rate_change"].strip()
    return {
        "platform_id": contest_id,
        "name": _clean_str(raw.get("title")) or "",
        "start_time": raw.get("start_epoch_second"),
        "duration_minutes": duration_seconds // 60 if duration_seconds is not None else None,
        "type": _atcoder_type(contest_id or ""),
        "website_url": f"{ATCODER_CONTEST_URL}{contest_id}" if contest_id else None,
        "registration_url": f"{ATCODER_CONTEST_URL}{contest_id}" if contest_id else None,
        "platform_metadata": metadata,
    }


_EXTRACTORS: dict[Platform, Callable[[RawContest], dict[str, Any]]] = {
    Platform.CODEFORCES: _extract_codeforces,
    Platform.LEETCODE: _extract_leetcode,
    Platform.CODECHEF: _extract_codechef,
    Platform.ATCODER: _extract_atcoder,
}


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def normalize(raw: RawContest, platform: Platform | str, now: datetime | None = None) -> NormalizedContest:
    """Normalize one raw contest. Raises NormalizationError on bad identity fields."""
    platform = Platform(platform)
    now = now or datetime.now(timezone.utc)
    if not isinstance(raw, dict):
        raise NormalizationError(platform.value, None, f"expected an object, got {type(raw).__name__}")

    try:
        fields = _EXTRACTORS[platform](raw)
    except (TypeError, ValueError, AttributeError) as exc:
        raise NormalizationError(platform.value, _clean_str(raw.get("id")), f"unreadable payload: {exc}") from exc

    platform_id = fields.get("platform_id")
    name = fields.get("name")
    if not platform_id:
        raise NormalizationError(platform.value, None, "missing platform id")
    if not name:
        raise NormalizationError(platform.value, platform_id, "missing name")

    try:
        start_time = parse_timestamp(fields.get("start_time"))
        end_time = parse_timestamp(fields.get("end_time"))
    except (TypeError, ValueError, OverflowError) as exc:
        raise NormalizationError(platform.value, platform_id, f"unparseable time: {exc}") from exc
    if start_time is None:
        raise NormalizationError(platform.value, platform_id, "missing start time")

    duration = fields.get("duration_minutes")
    if end_time is None and duration:
        end_time = start_time + timedelta(minutes=duration)
    if end_time is None:
        raise NormalizationError(platform.value, platform_id, "missing end time")
    if end_time <= start_time:
        raise NormalizationError(platform.value, platform_id, "end time is not after start time")
    if not duration:
        duration = int((end_time - start_time).total_seconds() // 60)

    phase = fields.get("phase") or compute_phase(start_time, end_time, now)
    contest_type = fields.get("type") or ContestType.OTHER
    difficulty = fields.get("difficulty") or TYPE_DIFFICULTY.get(contest_type)
    cancelled = bool(raw.get("cancelled") or raw.get("isCancelled"))

    return NormalizedContest(
        platform=platform.value,
        platform_id=platform_id,
        name=name,
        start_time=start_time,
        end_time=end_time,
        duration_minutes=duration,
        phase=ContestPhase(phase).value,
        type=ContestType(contest_type).value,
        difficulty=DifficultyLevel(difficulty).value if difficulty else None,
        participant_count=fields.get("participant_count"),
        problem_count=fields.get("problem_count"),
        description=fields.get("description"),
        location=fields.get("location"),
        website_url=fields.get("website_url"),
        registration_url=fields.get("registration_url"),
        platform_metadata=fields.get("platform_metadata") or {},
        is_active=not cancelled,
    )
