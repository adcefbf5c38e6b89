"""LogTailer module."""

from .normalize import extract_text, normalize_entry, parse_line
from .tailer import ILogTailer, LogTailer, TailSubscription, WatchFactory, watch_file

__all__ = [
    "ILogTailer",
    "LogTailer",
    "TailSubscription",
    "WatchFactory",
    "extract_text",
    "normalize_entry",
    "parse_line",
    "watch_file",
]
