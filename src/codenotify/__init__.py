"""CodeNotify: contest schedule aggregation and reminders."""

__version__ = "0.1.0"
