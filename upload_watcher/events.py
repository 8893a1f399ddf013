"""
Lifecycle and progress events, delivered to listeners off the caller's thread.
"""
import logging
import queue
import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


class EventType(Enum):
    MONITORING_STARTED = "monitoring-started"
    MONITORING_STOPPED = "monitoring-stopped"
    NEW_FILES_DETECTED = "new-files-detected"
    UPLOAD_STARTED = "upload-start"
    UPLOAD_SUCCEEDED = "upload-success"
    UPLOAD_FAILED = "upload-error"
    FOLDER_ERROR = "folder-error"


@dataclass
class MonitorEvent:
    """A single event, timestamped when emitted."""
    type: EventType
    data: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)


Listener = Callable[[MonitorEvent], None]
Emitter = Callable[..., None]

_STOP = object()


class EventDispatcher:
    """Delivers events in order to registered listeners.

    emit() only enqueues, so a slow listener never stalls scanning or
    uploading. A listener that raises is logged and skipped.
    """

    def __init__(self):
        self._listeners: List[Listener] = []
        self._queue: "queue.Queue[Any]" = queue.Queue()
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None

    def add_listener(self, listener: Listener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def emit(self, event_type: EventType, **data: Any) -> MonitorEvent:
        """Queue an event for delivery.

        Args:
            event_type: Kind of event
            **data: Event payload

        Returns:
            The queued event
        """
        event = MonitorEvent(type=event_type, data=data)
        self._ensure_running()
        self._queue.put(event)
        return event

    def _ensure_running(self) -> None:
        with self._lock:
            if self._thread is None or not self._thread.is_alive():
                self._thread = threading.Thread(
                    target=self._run, name="event-dispatcher", daemon=True
                )
                self._thread.start()

    def _run(self) -> None:
        while True:
            event = self._queue.get()
            try:
                if event is _STOP:
                    return
                with self._lock:
                    listeners = list(self._listeners)
                for listener in listeners:
                    try:
                        listener(event)
                    except Exception as e:
                        logger.error(f"Event listener failed on {event.type.value}: {e}",
                                     exc_info=True)
            finally:
                self._queue.task_done()

    def wait_until_idle(self) -> None:
        """Block until every queued event has been delivered."""
        self._queue.join()

    def close(self) -> None:
        """Deliver what is queued, then stop the dispatcher thread."""
        with self._lock:
            thread = self._thread
            self._thread = None
        if thread is not None and thread.is_alive():
            self._queue.put(_STOP)
            thread.join(timeout=5)
