"""
Test fixtures for the upload watcher.
"""
import json
import threading
import time
from pathlib import Path
from typing import Callable, List, Optional
from unittest.mock import MagicMock

import pytest

from upload_watcher.config import ConfigStore
from upload_watcher.exceptions import UploadRejected
from upload_watcher.models import UploadResult, WatchConfig
from upload_watcher.tracker import UploadTracker

TEST_ENDPOINT = "http://uploads.example.test/upload"


class FakeUploader:
    """Stands in for HttpUploader, recording calls."""

    def __init__(self, endpoint: str = TEST_ENDPOINT, fail_names=(),
                 block: Optional[threading.Event] = None):
        self.endpoint = endpoint
        self.fail_names = set(fail_names)
        self.block = block
        self.calls: List[str] = []
        self._lock = threading.Lock()

    def upload(self, file_path: Path, name: Optional[str] = None) -> UploadResult:
        name = name or Path(file_path).name
        with self._lock:
            self.calls.append(name)
        if self.block is not None:
            self.block.wait(timeout=5)
        if name in self.fail_names:
            return UploadResult(
                name=name,
                file_path=Path(file_path),
                success=False,
                status_code=500,
                body="boom",
                error=UploadRejected(500, "boom")
            )
        return UploadResult(
            name=name,
            file_path=Path(file_path),
            success=True,
            status_code=200,
            body='{"ok": true}',
            response_json={"ok": True}
        )


class FakeUploaderFactory:
    """Builds FakeUploaders and remembers every one it built."""

    def __init__(self, fail_names=()):
        self.fail_names = set(fail_names)
        self.created: List[FakeUploader] = []

    def __call__(self, endpoint: str) -> FakeUploader:
        uploader = FakeUploader(endpoint, fail_names=self.fail_names)
        self.created.append(uploader)
        return uploader

    @property
    def latest(self) -> FakeUploader:
        return self.created[-1]

    def all_calls(self) -> List[tuple]:
        return [(u.endpoint, name) for u in self.created for name in u.calls]


@pytest.fixture
def tmp_watch_dir(tmp_path):
    """Create a temporary directory to watch."""
    watch_dir = tmp_path / "screenshots"
    watch_dir.mkdir()
    return watch_dir


@pytest.fixture
def tmp_record_file(tmp_path):
    """Path for the uploaded file record."""
    return tmp_path / "uploaded_files.json"


@pytest.fixture
def tmp_config_file(tmp_path, tmp_watch_dir):
    """Create a config file pointing at the watch directory with short delays."""
    config_file = tmp_path / "config.json"
    config_file.write_text(json.dumps({
        "folderPath": str(tmp_watch_dir),
        "remoteUploadUrl": TEST_ENDPOINT,
        "scanSettleDelay": 0.01,
        "changeSettleDelay": 0.05
    }))
    return config_file


@pytest.fixture
def upload_tracker(tmp_record_file):
    """Create a test upload tracker."""
    return UploadTracker(tmp_record_file)


@pytest.fixture
def config_store(tmp_config_file):
    """Create a test configuration store."""
    return ConfigStore(tmp_config_file)


@pytest.fixture
def watch_config(tmp_watch_dir):
    """A config with near-zero settle delays."""
    return WatchConfig(
        directory=tmp_watch_dir,
        endpoint=TEST_ENDPOINT,
        scan_settle_delay=0.01,
        change_settle_delay=0.05
    )


@pytest.fixture
def fake_uploader():
    return FakeUploader()


@pytest.fixture
def uploader_factory():
    return FakeUploaderFactory()


@pytest.fixture
def make_response() -> Callable[..., MagicMock]:
    """Build a fake streamed requests response."""
    def _make(status: int = 200, body: str = '{"success": true}') -> MagicMock:
        response = MagicMock()
        response.status_code = status
        response.encoding = "utf-8"
        response.iter_content.return_value = [body.encode("utf-8")]
        return response
    return _make


@pytest.fixture
def wait_for() -> Callable[..., bool]:
    """Poll a predicate until it is true or the timeout runs out."""
    def _wait(predicate: Callable[[], bool], timeout: float = 5.0,
              interval: float = 0.01) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate():
                return True
            time.sleep(interval)
        return predicate()
    return _wait
