"""
Error types for the upload watcher.
"""
from typing import Optional


class UploadWatcherError(Exception):
    """Base class for all upload watcher errors."""


class FolderError(UploadWatcherError):
    """Raised when the watched directory cannot be listed or watched."""

    def __init__(self, folder: str, reason: str):
        self.folder = folder
        self.reason = reason
        super().__init__(f"{reason}: {folder}")


class StorageError(UploadWatcherError):
    """Base class for persisted state errors."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"{reason} ({path})")


class StorageCorrupt(StorageError):
    """Raised when persisted state cannot be parsed."""


class StorageWriteError(StorageError):
    """Raised when persisted state cannot be written."""


class UploadError(UploadWatcherError):
    """Base class for per-file upload failures.

    These are returned inside an UploadResult rather than raised.
    """

    @property
    def reason(self) -> str:
        return str(self)


class UploadTimeout(UploadError):
    """The request/response exchange exceeded the upload timeout."""

    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(f"Upload timed out after {timeout:g}s")


class UploadRejected(UploadError):
    """The server answered with a non-2xx status."""

    def __init__(self, status: int, body: Optional[str] = None):
        self.status = status
        self.body = body
        detail = f"{status} - {body}" if body else str(status)
        super().__init__(f"Server rejected upload: {detail}")


class UploadTransportError(UploadError):
    """The request could not be sent or the response could not be read."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(f"Transport error: {message}")


class UploadReadError(UploadError):
    """The local file could not be read."""

    def __init__(self, path: str, message: str):
        self.path = path
        self.message = message
        super().__init__(f"Error reading {path}: {message}")
