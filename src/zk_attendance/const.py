import os
import zoneinfo

import tzlocal

from zk_attendance import __version__

__all__ = [
    "LOCAL_TZ",
    "YES_ANSWER",
    "ZK_CHUNK_DELAY_MS",
    "ZK_DEBUG",
    "ZK_HOST",
    "ZK_LOG_FORMAT",
    "ZK_LOG_HUMAN_OUTPUT",
    "ZK_LOG_JSON_FILE",
    "ZK_LOG_NAME",
    "ZK_METRICS_ENABLED",
    "ZK_METRICS_PORT",
    "ZK_PASSWORD",
    "ZK_PERF_THRESHOLD_MS",
    "ZK_PERF_TRACKING",
    "ZK_PORT",
    "ZK_TIMEOUT",
    "ZK_VERSION",
    "env_float",
    "env_int",
]

YES_ANSWER = ("true", "1", "yes", "y", "t", 1, "on", "o")
LOCAL_TZ = zoneinfo.ZoneInfo(str(tzlocal.get_localzone()))
ZK_LOG_NAME: str = "zk_attendance"
ZK_VERSION: str = __version__


def env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, str(default))
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, str(default))
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


# Device Connection
ZK_HOST: str = os.environ.get("ZK_HOST", "192.168.1.201")
ZK_PORT: int = env_int("ZK_PORT", 4370)
ZK_PASSWORD: int = env_int("ZK_PASSWORD", 0)
ZK_TIMEOUT: float = env_float("ZK_TIMEOUT", 10.0)
ZK_CHUNK_DELAY_MS: int = env_int("ZK_CHUNK_DELAY_MS", 10)

ZK_DEBUG = os.environ.get("ZK_DEBUG", "0").casefold() in YES_ANSWER

# Logging Configuration
ZK_LOG_FORMAT: str = os.environ.get("ZK_LOG_FORMAT", "human")  # "json", "human", or "both"
_json_file = os.environ.get("ZK_LOG_JSON_FILE")
ZK_LOG_JSON_FILE: str | None = _json_file if _json_file else None
ZK_LOG_HUMAN_OUTPUT: str = os.environ.get("ZK_LOG_HUMAN_OUTPUT", "stderr")  # "stdout", "stderr", or file path

# Metrics
ZK_METRICS_ENABLED: bool = os.environ.get("ZK_METRICS_ENABLED", "0").casefold() in YES_ANSWER
ZK_METRICS_PORT: int = env_int("ZK_METRICS_PORT", 9400)

# Performance Instrumentation
ZK_PERF_TRACKING: bool = os.environ.get("ZK_PERF_TRACKING", "true").casefold() in YES_ANSWER
_perf_threshold = os.environ.get("ZK_PERF_THRESHOLD_MS", "500")
ZK_PERF_THRESHOLD_MS: int = int(_perf_threshold) if _perf_threshold and _perf_threshold.isdigit() else 500
