"""Blocking TCP transport used for one RTSP exchange at a time."""

from __future__ import annotations

import logging
import re
import socket
import threading
import time
from typing import Optional

from .exceptions import RTSPConnectionError

log = logging.getLogger("rtspkit.transport")

_HEADER_END = b"\r\n\r\n"
_CONTENT_LENGTH_RE = re.compile(rb"^content-length[ \t]*:[ \t]*(\d+)", re.IGNORECASE | re.MULTILINE)
MAX_MESSAGE_SIZE = 1 << 20


class TCPTransport:
    """Byte-in/byte-out TCP channel.

    ``receive()`` returns one complete RTSP message: everything up to the blank
    line ending the headers plus ``Content-Length`` bytes of body, or whatever
    arrived before the peer closed the connection.
    """

    def __init__(self, host: str, port: int,
                 connect_timeout: Optional[float] = 5.0,
                 read_timeout: Optional[float] = 5.0,
                 write_timeout: Optional[float] = None,
                 auto_reconnect: bool = False,
                 max_reconnect_attempts: int = 3,
                 reconnect_delay: float = 1.0):
        self.host = host
        self.port = int(port)
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self.write_timeout = write_timeout if write_timeout is not None else read_timeout
        self.auto_reconnect = auto_reconnect
        self.max_reconnect_attempts = int(max_reconnect_attempts)
        self.reconnect_delay = float(reconnect_delay)
        self.reconnect_count = 0
        self._sock: Optional[socket.socket] = None
        self._closed = False
        self._lock = threading.Lock()

    @property
    def connected(self) -> bool:
        return self._sock is not None

    def connect(self) -> None:
        with self._lock:
            if self._closed:
                raise RTSPConnectionError("Transport is closed")
            if self._sock is not None:
                return
            attempts_left = 1 + (self.max_reconnect_attempts if self.auto_reconnect else 0)
            while True:
                try:
                    self._sock = socket.create_connection((self.host, self.port), timeout=self.connect_timeout)
                    log.debug("TCPTransport connected to %s:%d", self.host, self.port)
                    return
                except OSError as exc:
                    attempts_left -= 1
                    if attempts_left <= 0:
                        raise RTSPConnectionError(f"Cannot connect to {self.host}:{self.port}: {exc}") from exc
                    self.reconnect_count += 1
                    log.warning("Connect to %s:%d failed: %s (attempts left: %d)",
                                self.host, self.port, exc, attempts_left)
                    time.sleep(self.reconnect_delay)

    def send(self, data: bytes) -> None:
        with self._lock:
            sock = self._require_socket()
            try:
                sock.settimeout(self.write_timeout)
                sock.sendall(data)
            except OSError as exc:
                raise RTSPConnectionError(f"Send to {self.host}:{self.port} failed: {exc}") from exc

    def receive(self) -> bytes:
        with self._lock:
            sock = self._require_socket()
            buf = bytearray()
            expected: Optional[int] = None
            try:
                sock.settimeout(self.read_timeout)
                while True:
                    if expected is None:
                        end = buf.find(_HEADER_END)
                        if end >= 0:
                            m = _CONTENT_LENGTH_RE.search(bytes(buf[:end]))
                            expected = end + len(_HEADER_END) + (int(m.group(1)) if m else 0)
                    if expected is not None and len(buf) >= expected:
                        return bytes(buf)
                    if len(buf) > MAX_MESSAGE_SIZE:
                        raise RTSPConnectionError(f"Response from {self.host}:{self.port} exceeds {MAX_MESSAGE_SIZE} bytes")
                    chunk = sock.recv(65536)
                    if not chunk:
                        return bytes(buf)
                    buf.extend(chunk)
            except OSError as exc:
                raise RTSPConnectionError(f"Receive from {self.host}:{self.port} failed: {exc}") from exc

    def close(self) -> None:
        with self._lock:
            self._closed = True
            sock, self._sock = self._sock, None
        if sock is not None:
            try:
                sock.shutdown(socket.SHUT_RDWR)
            except OSError:
                # peer already gone
                pass
            sock.close()
            log.debug("TCPTransport closed %s:%d", self.host, self.port)

    def abort(self) -> None:
        """Close without taking the lock; safe to call from another thread.

        shutdown() wakes a recv() blocked in another thread, close() alone does not.
        """
        self._closed = True
        sock, self._sock = self._sock, None
        if sock is not None:
            try:
                sock.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
            sock.close()

    def _require_socket(self) -> socket.socket:
        if self._closed:
            raise RTSPConnectionError("Transport is closed")
        if self._sock is None:
            raise RTSPConnectionError(f"Not connected to {self.host}:{self.port}")
        return self._sock

    def __enter__(self) -> "TCPTransport":
        self.connect()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
