from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List


DEFAULT_QUEUE_SIZE = 100
DEFAULT_DEMO_STREAMS = "demo-notifications demo-metrics demo-alerts"
DEFAULT_DEMO_INTERVAL_SECS = 3.0


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, str(default)))
    except Exception:
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.environ.get(name, str(default)))
    except Exception:
        return default


def _env_list(name: str, default: str) -> List[str]:
    raw = os.environ.get(name, default)
    return [p for p in raw.replace(",", " ").split() if p]


def _queue_size() -> int:
    n = _env_int("STREAM_HUB_QUEUE_SIZE", DEFAULT_QUEUE_SIZE)
    return n if n > 0 else DEFAULT_QUEUE_SIZE


def _demo_interval() -> float:
    v = _env_float("STREAM_HUB_DEMO_INTERVAL_SECS", DEFAULT_DEMO_INTERVAL_SECS)
    return v if v > 0 else DEFAULT_DEMO_INTERVAL_SECS


@dataclass
class HubConfig:
    """Service settings, read from ``STREAM_HUB_*`` environment variables.

    Defaults are resolved when the config is instantiated, so a process can
    adjust its environment before building the app. Malformed numbers fall
    back to the defaults.
    """

    queue_size: int = field(default_factory=_queue_size)
    demo_streams: List[str] = field(
        default_factory=lambda: _env_list("STREAM_HUB_DEMO_STREAMS", DEFAULT_DEMO_STREAMS)
    )
    demo_interval_secs: float = field(default_factory=_demo_interval)
    # Empty string disables mirroring log records into a stream
    log_stream: str = field(default_factory=lambda: os.environ.get("STREAM_HUB_LOG_STREAM", "logs").strip())
    log_level: str = field(default_factory=lambda: os.environ.get("STREAM_HUB_LOG_LEVEL", "INFO").upper())
    host: str = field(default_factory=lambda: os.environ.get("STREAM_HUB_HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: _env_int("STREAM_HUB_PORT", 8000))
