"""Streaming package for job log buffering and tailing."""

from .log_stream import LOG_STREAM_FLUSH, stream_rolling_log
from .rolling_log import RollingLog

__all__ = ["LOG_STREAM_FLUSH", "RollingLog", "stream_rolling_log"]
