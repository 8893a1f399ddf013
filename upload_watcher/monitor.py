"""
Module for watching the upload folder and handing new files to the uploader.
"""
import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Callable, List, Optional, Set

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .events import EventType
from .exceptions import FolderError, UploadError
from .models import PendingUpload, UploadResult, WatchConfig, WatcherState
from .scanner import FileScanner
from .tracker import UploadTracker
from .uploader import HttpUploader

logger = logging.getLogger(__name__)


def _no_emit(event_type: EventType, **data) -> None:
    pass


class FolderChangeHandler(FileSystemEventHandler):
    """Turns create and rename notifications into rescan requests."""

    def __init__(self, on_change: Callable[[str], None]):
        super().__init__()
        self._on_change = on_change

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._on_change(event.src_path)

    def on_moved(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._on_change(event.dest_path)


class DirectoryMonitor:
    """Watches one folder and uploads files not yet in the upload record.

    A full scan runs on start and again after every burst of filesystem
    notifications. Files that fail to upload are not recorded, so the
    next scan picks them up again.
    """

    def __init__(self, config: WatchConfig, tracker: UploadTracker,
                 uploader: HttpUploader,
                 emit: Optional[Callable[..., None]] = None,
                 scanner: Optional[FileScanner] = None,
                 observer_factory: Callable[[], Observer] = Observer):
        """Initialize the directory monitor.

        Args:
            config: Folder and settle delays to use
            tracker: Record of already uploaded names
            uploader: Uploader for new files
            emit: Called as emit(event_type, **data) for each event
            scanner: Folder scanner, mainly for tests
            observer_factory: Creates the watchdog observer
        """
        self.config = config
        self.tracker = tracker
        self.uploader = uploader
        self.scanner = scanner or FileScanner()
        self._emit = emit or _no_emit
        self._observer_factory = observer_factory
        self._observer: Optional[Observer] = None
        self._state = WatcherState.IDLE
        self._in_flight: Set[str] = set()
        self._timers: Set[threading.Timer] = set()
        self._rescan_timer: Optional[threading.Timer] = None
        self._lock = threading.RLock()
        self._handler = FolderChangeHandler(self.notify_change)

    @property
    def directory(self) -> Path:
        return self.config.directory

    @property
    def state(self) -> WatcherState:
        return self._state

    @property
    def is_watching(self) -> bool:
        return self._state is WatcherState.WATCHING

    @property
    def in_flight(self) -> Set[str]:
        with self._lock:
            return set(self._in_flight)

    def start(self) -> bool:
        """Scan the folder and start watching it for changes.

        Returns:
            True if the monitor is watching, False if the folder could not
            be read or watched
        """
        with self._lock:
            if self._state is WatcherState.WATCHING:
                return True

            try:
                candidates = self.collect_candidates()
                observer = self._observer_factory()
                observer.schedule(self._handler, str(self.directory), recursive=False)
                observer.start()
            except FolderError as e:
                self._report_folder_error(e)
                return False
            except OSError as e:
                self._report_folder_error(
                    FolderError(str(self.directory), f"Error watching folder: {e.strerror or e}")
                )
                return False

            self._observer = observer
            self._state = WatcherState.WATCHING
            logger.info(f"Started watching {self.directory}")
            if candidates:
                self._schedule(self.config.scan_settle_delay, self.submit, candidates)

        return True

    def stop(self) -> None:
        """Stop watching. Uploads already running are left to finish."""
        with self._lock:
            if self._state is WatcherState.IDLE:
                return

            self._state = WatcherState.IDLE
            observer, self._observer = self._observer, None
            timers = list(self._timers)
            self._timers.clear()
            self._rescan_timer = None

        for timer in timers:
            timer.cancel()
        if observer is not None:
            observer.stop()
            observer.join(timeout=5)

        logger.info(f"Stopped watching {self.directory}")

    def notify_change(self, path: Optional[str] = None) -> None:
        """Schedule a rescan once the folder has been quiet for the settle delay.

        Args:
            path: Path reported by the notification, for logging only
        """
        with self._lock:
            if self._state is not WatcherState.WATCHING:
                return
            if self._rescan_timer is not None:
                self._rescan_timer.cancel()
                self._timers.discard(self._rescan_timer)
            self._rescan_timer = self._schedule(self.config.change_settle_delay, self.scan)

        logger.debug(f"Change in {self.directory} ({path}), rescan scheduled")

    def collect_candidates(self) -> List[PendingUpload]:
        """List the folder and return files that still need uploading.

        Raises:
            FolderError: If the folder cannot be read
        """
        return self.scanner.scan_folder(self.directory, self._is_candidate)

    def scan(self) -> int:
        """Scan the folder and schedule uploads for new files.

        Returns:
            Number of candidates found
        """
        if not self.is_watching:
            return 0

        try:
            candidates = self.collect_candidates()
        except FolderError as e:
            self._report_folder_error(e)
            return 0

        if candidates:
            with self._lock:
                if self._state is WatcherState.WATCHING:
                    self._schedule(self.config.scan_settle_delay, self.submit, candidates)
        return len(candidates)

    def submit(self, candidates: List[PendingUpload]) -> List[UploadResult]:
        """Upload candidates concurrently and record the successful ones.

        Names already recorded or already being uploaded are skipped.

        Args:
            candidates: Files found by a scan

        Returns:
            One result per upload attempted
        """
        with self._lock:
            claimed = [c for c in candidates if self._is_candidate(c.name)]
            self._in_flight.update(c.name for c in claimed)

        if not claimed:
            return []

        logger.info(f"Detected {len(claimed)} new file(s) in {self.directory}")
        self._emit(EventType.NEW_FILES_DETECTED, count=len(claimed))

        results = []
        with ThreadPoolExecutor(max_workers=len(claimed),
                                thread_name_prefix="upload") as executor:
            future_to_pending = {
                executor.submit(self._upload_one, pending): pending
                for pending in claimed
            }

            for future in as_completed(future_to_pending):
                pending = future_to_pending[future]
                try:
                    results.append(future.result())
                except Exception as e:
                    logger.error(f"Unexpected error uploading {pending.name}: {e}", exc_info=True)
                    self._emit(EventType.UPLOAD_FAILED, name=pending.name, reason=str(e))
                    results.append(UploadResult(
                        name=pending.name,
                        file_path=pending.path,
                        success=False,
                        error=UploadError(str(e)),
                        size_bytes=pending.size
                    ))

        return results

    def _upload_one(self, pending: PendingUpload) -> UploadResult:
        try:
            self._emit(EventType.UPLOAD_STARTED, name=pending.name)
            result = self.uploader.upload(pending.path, pending.name)

            if result.success:
                self.tracker.add(pending.name)
                self._emit(EventType.UPLOAD_SUCCEEDED, name=pending.name,
                           response_body=result.body)
            else:
                self._emit(EventType.UPLOAD_FAILED, name=pending.name, reason=result.reason)
            return result
        finally:
            with self._lock:
                self._in_flight.discard(pending.name)

    def _is_candidate(self, name: str) -> bool:
        return not self.tracker.contains(name) and name not in self._in_flight

    def _schedule(self, delay: float, func: Callable, *args) -> threading.Timer:
        """Run func after delay unless the monitor is stopped first.

        Must be called with the lock held.
        """
        timer: Optional[threading.Timer] = None

        def run() -> None:
            with self._lock:
                self._timers.discard(timer)
                if self._rescan_timer is timer:
                    self._rescan_timer = None
                if self._state is not WatcherState.WATCHING:
                    return
            func(*args)

        timer = threading.Timer(delay, run)
        timer.daemon = True
        self._timers.add(timer)
        timer.start()
        return timer

    def _report_folder_error(self, error: FolderError) -> None:
        logger.error(f"Folder error: {error}")
        self._emit(EventType.FOLDER_ERROR, folder=error.folder, reason=error.reason)
