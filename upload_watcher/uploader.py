"""
Module for uploading files to the remote HTTP endpoint.
"""
import base64
import json
import logging
import socket
import threading
from pathlib import Path
from typing import Optional

import requests
from requests.adapters import HTTPAdapter

from .exceptions import (
    UploadError,
    UploadReadError,
    UploadRejected,
    UploadTimeout,
    UploadTransportError,
)
from .models import UploadResult, is_valid_endpoint

logger = logging.getLogger(__name__)

UPLOAD_TIMEOUT = 30.0
CHUNK_SIZE = 8192
# Connections kept per host; a larger burst opens throwaway connections
POOL_MAXSIZE = 32

DEFAULT_MIME_TYPE = "image/png"
MIME_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".webp": "image/webp",
}


def mime_type_for(name: str) -> str:
    """Pick the MIME type for a file from its extension.

    Args:
        name: File name or path

    Returns:
        The mapped MIME type, image/png for anything unmapped
    """
    return MIME_TYPES.get(Path(name).suffix.lower(), DEFAULT_MIME_TYPE)


def build_data_url(data: bytes, mime_type: str) -> str:
    """Encode binary content as a base64 data URL."""
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


def build_request_body(data: bytes, mime_type: str) -> bytes:
    """Build the JSON body expected by the upload endpoint."""
    payload = {
        "imageData": build_data_url(data, mime_type),
        "autoadd": 1,
    }
    return json.dumps(payload).encode("utf-8")


class _Exchange:
    """One POST and its response body, run on a worker thread.

    The caller waits on ``done`` for the overall deadline and calls
    ``abort`` if it passes. Aborting shuts the socket down, so a read
    blocked on a trickling server returns at once.
    """

    def __init__(self, session: requests.Session, endpoint: str, body: bytes,
                 timeout: float):
        self.session = session
        self.endpoint = endpoint
        self.body = body
        self.timeout = timeout
        self.done = threading.Event()
        self.status_code: Optional[int] = None
        self.text: Optional[str] = None
        self.error: Optional[Exception] = None
        self._lock = threading.Lock()
        self._response: Optional[requests.Response] = None
        self._aborted = False

    def run(self) -> None:
        try:
            response = self.session.post(
                self.endpoint,
                data=self.body,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
                stream=True,
            )
            with self._lock:
                if self._aborted:
                    # Headers arrived after the deadline
                    response.close()
                    return
                self._response = response
            try:
                self.text = self._read_body(response)
                self.status_code = response.status_code
            finally:
                response.close()
        except Exception as e:
            if self._aborted:
                logger.debug(f"Aborted upload to {self.endpoint} ended with: {e}")
            else:
                self.error = e
        finally:
            self.done.set()

    @staticmethod
    def _read_body(response: requests.Response) -> str:
        chunks = []
        for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
            if chunk:
                chunks.append(chunk)

        raw = b"".join(chunks)
        encoding = response.encoding or "utf-8"
        try:
            return raw.decode(encoding, errors="replace")
        except LookupError:
            return raw.decode("utf-8", errors="replace")

    def abort(self) -> None:
        """Drop the connection of an exchange that ran past its deadline."""
        with self._lock:
            self._aborted = True
            response = self._response
        if response is None:
            return

        raw = getattr(response, "raw", None)
        connection = getattr(raw, "connection", None) or getattr(raw, "_connection", None)
        sock = getattr(connection, "sock", None)
        if sock is not None:
            try:
                sock.shutdown(socket.SHUT_RDWR)
            except OSError as e:
                logger.debug(f"Error shutting down upload socket: {e}")
        response.close()


class HttpUploader:
    """Uploads single files as JSON-wrapped data URLs.

    Each call makes exactly one attempt. The whole file is read into
    memory before sending, so very large files are fully buffered.
    """

    def __init__(self, endpoint: str, timeout: float = UPLOAD_TIMEOUT,
                 session: Optional[requests.Session] = None):
        """Initialize the HTTP uploader.

        Args:
            endpoint: Absolute http(s) URL to POST files to
            timeout: Deadline in seconds for the whole exchange
            session: Optional requests session to send with
        """
        if not is_valid_endpoint(endpoint):
            raise ValueError(f"Endpoint must be an absolute http(s) URL: {endpoint!r}")
        self.endpoint = endpoint
        self.timeout = timeout
        if session is None:
            session = requests.Session()
            adapter = HTTPAdapter(pool_maxsize=POOL_MAXSIZE)
            session.mount("http://", adapter)
            session.mount("https://", adapter)
        self.session = session

    def _failure(self, name: str, file_path: Path, error: UploadError,
                 status_code: Optional[int] = None, body: Optional[str] = None,
                 size_bytes: Optional[int] = None) -> UploadResult:
        logger.error(f"Error uploading {name} to {self.endpoint}: {error}")
        return UploadResult(
            name=name,
            file_path=file_path,
            success=False,
            status_code=status_code,
            body=body,
            error=error,
            size_bytes=size_bytes,
        )

    def upload(self, file_path: Path, name: Optional[str] = None) -> UploadResult:
        """Upload a single file to the endpoint.

        Args:
            file_path: Path to the file to upload
            name: Name to report the file under, defaults to its base name

        Returns:
            UploadResult describing the outcome; never raises for
            per-file failures
        """
        file_path = Path(file_path)
        name = name or file_path.name

        try:
            data = file_path.read_bytes()
        except OSError as e:
            return self._failure(name, file_path, UploadReadError(name, str(e)))

        size_bytes = len(data)
        body = build_request_body(data, mime_type_for(name))
        logger.info(f"Uploading {name} ({size_bytes} bytes) to {self.endpoint}")

        exchange = _Exchange(self.session, self.endpoint, body, self.timeout)
        worker = threading.Thread(target=exchange.run, name=f"upload-{name}", daemon=True)
        worker.start()
        if not exchange.done.wait(self.timeout):
            exchange.abort()
            return self._failure(name, file_path, UploadTimeout(self.timeout),
                                 size_bytes=size_bytes)

        error = exchange.error
        if isinstance(error, requests.exceptions.Timeout):
            return self._failure(name, file_path, UploadTimeout(self.timeout),
                                 size_bytes=size_bytes)
        if error is not None:
            return self._failure(name, file_path, UploadTransportError(str(error)),
                                 size_bytes=size_bytes)

        status = exchange.status_code
        text = exchange.text
        if not 200 <= status < 300:
            return self._failure(name, file_path, UploadRejected(status, text),
                                 status_code=status, body=text, size_bytes=size_bytes)

        try:
            response_json = json.loads(text)
        except ValueError:
            response_json = None
            logger.debug(f"Response for {name} is not JSON")

        logger.info(f"Uploaded {name}: {status} {text}")
        return UploadResult(
            name=name,
            file_path=file_path,
            success=True,
            status_code=status,
            body=text,
            response_json=response_json,
            size_bytes=size_bytes,
        )
