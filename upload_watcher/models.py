"""
Module containing data models for the upload watcher.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import urlparse

from .exceptions import UploadError

DEFAULT_SCAN_SETTLE_DELAY = 0.1
DEFAULT_CHANGE_SETTLE_DELAY = 0.5


def is_valid_endpoint(url: Any) -> bool:
    """Check that a value is an absolute http(s) URL with a host."""
    if not isinstance(url, str):
        return False
    if not url.startswith(("http://", "https://")):
        return False
    return bool(urlparse(url).netloc)


class MonitorState(Enum):
    """Controller-level monitoring state."""
    STOPPED = "stopped"
    RUNNING = "running"


class WatcherState(Enum):
    """Directory monitor state."""
    IDLE = "idle"
    WATCHING = "watching"


@dataclass(frozen=True)
class WatchConfig:
    """Run-time settings for the watcher."""
    directory: Path
    endpoint: str
    scan_settle_delay: float = DEFAULT_SCAN_SETTLE_DELAY
    change_settle_delay: float = DEFAULT_CHANGE_SETTLE_DELAY

    def __post_init__(self):
        """Validate the configuration."""
        if not is_valid_endpoint(self.endpoint):
            raise ValueError(f"Endpoint must be an absolute http(s) URL: {self.endpoint!r}")
        if self.scan_settle_delay < 0 or self.change_settle_delay < 0:
            raise ValueError("Settle delays cannot be negative")
        if not isinstance(self.directory, Path):
            object.__setattr__(self, "directory", Path(self.directory))


@dataclass
class PendingUpload:
    """A candidate file found by a scan, waiting to be uploaded."""
    name: str
    path: Path
    size: int
    detected_at: datetime = field(default_factory=datetime.now)


@dataclass
class UploadResult:
    """Represents the result of a single file upload."""
    name: str
    file_path: Path
    success: bool
    status_code: Optional[int] = None
    body: Optional[str] = None
    response_json: Optional[Any] = None
    error: Optional[UploadError] = None
    size_bytes: Optional[int] = None

    @property
    def reason(self) -> Optional[str]:
        return self.error.reason if self.error else None


@dataclass
class ControllerStatus:
    """Snapshot of the controller state."""
    state: MonitorState
    directory: Path
    endpoint: str

    @property
    def is_monitoring(self) -> bool:
        return self.state is MonitorState.RUNNING

    def to_dict(self) -> Dict[str, Any]:
        """Return the status in the shape presentation layers expect."""
        return {
            "isMonitoring": self.is_monitoring,
            "folderPath": str(self.directory),
            "uploadUrl": self.endpoint,
        }
