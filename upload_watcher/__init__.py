from .config import ConfigStore
from .controller import UploadController
from .events import EventDispatcher, EventType, MonitorEvent
from .models import ControllerStatus, MonitorState, PendingUpload, UploadResult, WatchConfig
from .monitor import DirectoryMonitor
from .scanner import FileScanner
from .tracker import UploadTracker
from .uploader import HttpUploader, mime_type_for

__version__ = "0.1.0"

__all__ = [
    "ConfigStore",
    "UploadController",
    "EventDispatcher",
    "EventType",
    "MonitorEvent",
    "ControllerStatus",
    "MonitorState",
    "PendingUpload",
    "UploadResult",
    "WatchConfig",
    "DirectoryMonitor",
    "FileScanner",
    "UploadTracker",
    "HttpUploader",
    "mime_type_for",
]
