"""
settings.py

Runtime configuration for klogs.

Every field can be set from the environment (prefixed with KLOGS_) and is
overridden by the matching command-line flag:

- KLOGS_KUBECONFIG               (default: ~/.kube/config)
- KLOGS_NAMESPACE                (default: namespace of the current context)
- KLOGS_LABELS                   (JSON list of label selectors)
- KLOGS_ALL_PODS                 (default: false)
- KLOGS_TAIL                     (default: -1, no limit)
- KLOGS_SINCE                    (Go-style duration, e.g. 10m or 1h30m)
- KLOGS_FOLLOW                   (default: false)
- KLOGS_INIT_CONTAINERS          (default: false)
- KLOGS_LOG_PATH                 (default: logs/<YYYY-MM-DDTHH:MM>)
- KLOGS_CHECK_NEW_PODS_INTERVAL  (default: 5 seconds)
- KLOGS_STATUS_REFRESH_INTERVAL  (default: 1 second)
- KLOGS_SIZE_REFRESH_INTERVAL    (default: 3 seconds)
- KLOGS_QUEUE_SIZE               (default: 50)
- KLOGS_LOG_LEVEL                (default: WARNING)
"""

import logging
import re
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationInfo, field_validator
from pydantic_settings import BaseSettings


TAIL_DISABLED = -1
LOG_PATH_ROOT = "logs"
LOG_PATH_TIME_FORMAT = "%Y-%m-%dT%H:%M"

_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_PART = re.compile(r"(\d+\.?\d*|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


def parse_duration(text: str) -> float:
    """
    Parse a Go-style duration ("300ms", "10s", "1h30m", "-2m") into seconds.

    A bare "0" is accepted; every other number needs a unit.
    """
    s = text.strip()
    sign = 1.0
    if s[:1] in ("+", "-"):
        if s[0] == "-":
            sign = -1.0
        s = s[1:]
    if s == "0":
        return 0.0
    if not s:
        raise ValueError(f"invalid duration {text!r}")

    total = 0.0
    pos = 0
    while pos < len(s):
        m = _DURATION_PART.match(s, pos)
        if not m:
            raise ValueError(f"invalid duration {text!r}")
        total += float(m.group(1)) * _DURATION_UNITS[m.group(2)]
        pos = m.end()
    return sign * total


class KlogsSettings(BaseSettings):
    kubeconfig: Optional[str] = None
    namespace: Optional[str] = None
    labels: List[str] = []
    all_pods: bool = False
    tail: int = TAIL_DISABLED
    since: Optional[str] = None
    follow: bool = False
    init_containers: bool = False
    log_path: Optional[str] = None
    check_new_pods_interval: float = 5.0
    status_refresh_interval: float = 1.0
    size_refresh_interval: float = 3.0
    queue_size: int = 50
    log_level: str = "WARNING"

    class Config:
        env_prefix = "KLOGS_"

    @field_validator("kubeconfig", "namespace", "log_path")
    @classmethod
    def blank_is_none(cls, v: Optional[str]):
        if v is None or not v.strip():
            return None
        return v.strip()

    @field_validator("labels")
    @classmethod
    def drop_blank_labels(cls, v: List[str]):
        return [label.strip() for label in v if label and label.strip()]

    @field_validator("tail")
    @classmethod
    def tail_in_range(cls, v: int):
        if v < TAIL_DISABLED:
            raise ValueError(f"tail must be {TAIL_DISABLED} (disabled) or a line count, got {v}")
        return v

    @field_validator("since")
    @classmethod
    def since_is_duration(cls, v: Optional[str]):
        if v is None or not v.strip():
            return None
        seconds = parse_duration(v)
        if seconds < 1:
            raise ValueError(f"since must be at least 1s, got {v!r}")
        return v.strip()

    @field_validator("check_new_pods_interval", "status_refresh_interval", "size_refresh_interval")
    @classmethod
    def must_be_positive(cls, v: float, info: ValidationInfo):
        if v <= 0:
            raise ValueError(f"{info.field_name} must be positive, got {v}")
        return v

    @field_validator("queue_size")
    @classmethod
    def queue_not_empty(cls, v: int):
        if v < 1:
            raise ValueError(f"queue_size must be at least 1, got {v}")
        return v

    @field_validator("log_level")
    @classmethod
    def known_log_level(cls, v: str):
        level = v.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"unknown log level {v!r}")
        return level

    @property
    def since_seconds(self) -> Optional[int]:
        if self.since is None:
            return None
        return int(parse_duration(self.since))

    @property
    def tail_lines(self) -> Optional[int]:
        if self.tail == TAIL_DISABLED:
            return None
        return self.tail

    def resolved_log_path(self, now: Optional[datetime] = None) -> Path:
        """Directory logs are written to: --logpath or logs/<timestamp>."""
        if self.log_path:
            return Path(self.log_path)
        now = now or datetime.now()
        return Path(LOG_PATH_ROOT) / now.strftime(LOG_PATH_TIME_FORMAT)
