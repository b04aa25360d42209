"""Error taxonomy for the sync and notification core."""

from __future__ import annotations


class CodeNotifyError(Exception):
    """Base class for all CodeNotify errors."""


class UpstreamUnavailable(CodeNotifyError):
    """A platform endpoint was unreachable or kept failing after the retry budget."""

    def __init__(self, platform: str, message: str, status_code: int | None = None) -> None:
        super().__init__(f"{platform}: {message}")
        self.platform = platform
        self.status_code = status_code


class UpstreamMalformed(CodeNotifyError):
    """A platform returned a payload that cannot be parsed into the expected shape."""

    def __init__(self, platform: str, message: str) -> None:
        super().__init__(f"{platform}: {message}")
        self.platform = platform


class NormalizationError(CodeNotifyError):
    """A raw contest is missing identity fields (id, name, start/end time)."""

    def __init__(self, platform: str, platform_id: str | None, message: str) -> None:
        super().__init__(f"{platform}/{platform_id or '?'}: {message}")
        self.platform = platform
        self.platform_id = platform_id


class StorageUnavailable(CodeNotifyError):
    """The contest store cannot be reached. Aborts the current tick."""


class ChannelDeliveryFailure(CodeNotifyError):
    """A notification channel failed to deliver to one target."""

    def __init__(self, channel: str, message: str) -> None:
        super().__init__(f"{channel}: {message}")
        self.channel = channel


class TickInProgress(CodeNotifyError):
    """A scheduled job of the same kind is still running."""
