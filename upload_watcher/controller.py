"""
Module for controlling the monitor lifecycle and configuration.
"""
import logging
import threading
from dataclasses import replace
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from watchdog.observers import Observer

from .config import ConfigStore
from .events import EventDispatcher, EventType, Listener
from .exceptions import StorageWriteError
from .models import ControllerStatus, MonitorState, WatchConfig, is_valid_endpoint
from .monitor import DirectoryMonitor
from .tracker import UploadTracker
from .uploader import HttpUploader

logger = logging.getLogger(__name__)


class UploadController:
    """Owns the directory monitor and mediates between callers and it.

    Reconfiguration always stops the monitor, swaps and persists the
    configuration, then starts a fresh monitor with the new settings.
    """

    def __init__(self, config_store: ConfigStore, tracker: UploadTracker,
                 uploader_factory: Callable[[str], HttpUploader] = HttpUploader,
                 observer_factory: Callable[[], Observer] = Observer,
                 dispatcher: Optional[EventDispatcher] = None):
        """Initialize the upload controller.

        Args:
            config_store: Persistent configuration
            tracker: Record of already uploaded names
            uploader_factory: Builds an uploader for an endpoint URL
            observer_factory: Creates watchdog observers for the monitor
            dispatcher: Event dispatcher, a new one if not given
        """
        self.config_store = config_store
        self.tracker = tracker
        self.events = dispatcher or EventDispatcher()
        self._uploader_factory = uploader_factory
        self._observer_factory = observer_factory
        self._config: WatchConfig = config_store.load()
        self._monitor: Optional[DirectoryMonitor] = None
        self._state = MonitorState.STOPPED
        self._lock = threading.RLock()

    @property
    def config(self) -> WatchConfig:
        return self._config

    @property
    def state(self) -> MonitorState:
        return self._state

    @property
    def monitor(self) -> Optional[DirectoryMonitor]:
        return self._monitor

    def add_listener(self, listener: Listener) -> None:
        self.events.add_listener(listener)

    def remove_listener(self, listener: Listener) -> None:
        self.events.remove_listener(listener)

    def start(self) -> bool:
        """Start monitoring with the current configuration.

        Returns:
            True if monitoring is running afterwards
        """
        with self._lock:
            if self._state is MonitorState.RUNNING:
                return True

            monitor = DirectoryMonitor(
                self._config,
                self.tracker,
                self._uploader_factory(self._config.endpoint),
                emit=self.events.emit,
                observer_factory=self._observer_factory,
            )
            if not monitor.start():
                logger.warning(f"Monitoring not started for {self._config.directory}")
                return False

            self._monitor = monitor
            self._state = MonitorState.RUNNING
            logger.info(
                f"Monitoring started: folder={self._config.directory} "
                f"url={self._config.endpoint}"
            )
            self.events.emit(
                EventType.MONITORING_STARTED,
                folder=str(self._config.directory),
                url=self._config.endpoint,
            )
            return True

    def stop(self) -> bool:
        """Stop monitoring. Uploads in flight run to completion.

        Returns:
            True if monitoring is still running afterwards, i.e. always False
        """
        with self._lock:
            if self._state is MonitorState.STOPPED:
                return False

            if self._monitor is not None:
                self._monitor.stop()
            self._monitor = None
            self._state = MonitorState.STOPPED
            logger.info("Monitoring stopped")
            self.events.emit(EventType.MONITORING_STOPPED)
            return False

    def status(self) -> ControllerStatus:
        with self._lock:
            return ControllerStatus(
                state=self._state,
                directory=self._config.directory,
                endpoint=self._config.endpoint,
            )

    def reconfigure_directory(self, path: Path) -> ControllerStatus:
        """Switch to watching another folder.

        Raises:
            StorageWriteError: If the new config could not be persisted; the
                monitor is still restarted with the new folder
        """
        return self._reconfigure(directory=Path(path))

    def reconfigure_endpoint(self, url: str) -> ControllerStatus:
        """Switch to uploading to another endpoint.

        Raises:
            ValueError: If url is not an absolute http(s) URL
            StorageWriteError: If the new config could not be persisted; the
                monitor is still restarted with the new endpoint
        """
        if not is_valid_endpoint(url):
            raise ValueError(f"Endpoint must be an absolute http(s) URL: {url!r}")
        return self._reconfigure(endpoint=url)

    def _reconfigure(self, **changes: Any) -> ControllerStatus:
        with self._lock:
            new_config = replace(self._config, **changes)
            self.stop()
            self._config = new_config
            try:
                self.config_store.save(new_config)
            except StorageWriteError as e:
                logger.error(f"Error saving configuration: {e}")
                raise
            finally:
                self.start()
            return self.status()

    # Control surface for presentation layers

    def get_status(self) -> Dict[str, Any]:
        return self.status().to_dict()

    def change_folder(self, new_path: Any) -> Optional[Dict[str, Any]]:
        """Change the watched folder.

        Returns:
            The new status, or None if new_path is not a usable path
        """
        if not isinstance(new_path, (str, Path)) or not str(new_path).strip():
            logger.warning(f"Rejected folder path {new_path!r}")
            return None
        return self.reconfigure_directory(Path(str(new_path).strip())).to_dict()

    def set_server_url(self, new_url: Any) -> Optional[Dict[str, Any]]:
        """Change the upload endpoint.

        Returns:
            The new status, or None if new_url is not an http(s) URL
        """
        if isinstance(new_url, str):
            new_url = new_url.strip()
        if not is_valid_endpoint(new_url):
            logger.warning(f"Rejected server URL {new_url!r}")
            return None
        return self.reconfigure_endpoint(new_url).to_dict()

    def close(self) -> None:
        """Stop monitoring and deliver any pending events."""
        self.stop()
        self.events.close()
