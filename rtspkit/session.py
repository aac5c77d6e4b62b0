"""RTSPSession: the client-side RTSP state machine.

The session owns the server-assigned token, the CSeq counter and the
lifecycle state. Every method performs one blocking round trip over a fresh
transport which is closed on every exit path. A typical run::

    with RTSPSession("rtsp://camera.local/stream") as s:
        s.connect()
        sdp = s.describe_sdp()
        s.setup(0, "RTP/AVP/TCP;unicast;interleaved=0-1", control=sdp.video.control)
        s.play()
        ...
        s.teardown()
"""

from __future__ import annotations

import datetime
import enum
import logging
import threading
from typing import Any, Callable, Dict, Optional, Union

from .auth import authorization_for
from .exceptions import RTSPConnectionError, RTSPProtocolError, RTSPStateError, RTSPValidationError
from .sdp import SDPInfo, parse_sdp
from .transport import TCPTransport
from .utils import logger, parse_rtsp_url, resolve_control_url, strip_userinfo
from .wire import DEFAULT_USER_AGENT, RTSPMethod, RTSPRequest, RTSPResponse, format_request, parse_response

log = logging.getLogger("rtspkit.session")

DEFAULT_TIMEOUT = 5.0
DEFAULT_RANGE = "00:00:00.00"
CSEQ_MODULUS = 65535

Seconds = Union[float, int, datetime.timedelta]


class SessionState(enum.Enum):
    IDLE = "idle"
    CONNECTED = "connected"
    STREAMING = "streaming"
    PAUSED = "paused"
    CLOSED = "closed"


_ACTIVE = (SessionState.CONNECTED, SessionState.STREAMING, SessionState.PAUSED)


def _seconds(value: Optional[Seconds]) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, datetime.timedelta):
        return value.total_seconds()
    return float(value)


class CSeqCounter:
    """Sequence counter that wraps 65534 -> 0; only ever advanced under its lock."""

    def __init__(self, start: int = 0):
        if not 0 <= start < CSEQ_MODULUS:
            raise RTSPValidationError(f"CSeq start must be in [0, {CSEQ_MODULUS}), got {start}")
        self._value = start
        self._lock = threading.Lock()

    @property
    def value(self) -> int:
        return self._value

    def next(self) -> int:
        with self._lock:
            self._value = (self._value + 1) % CSEQ_MODULUS
            return self._value


class RTSPSession:
    """Represents an RTSP session (client)."""

    def __init__(self,
                 url: str,
                 timeout: Seconds = DEFAULT_TIMEOUT,
                 username: Optional[str] = None,
                 password: Optional[str] = None,
                 user_agent: str = DEFAULT_USER_AGENT,
                 connect_timeout: Optional[Seconds] = None,
                 read_timeout: Optional[Seconds] = None,
                 mode: str = 'strict',
                 debug: bool = False,
                 transport_factory: Optional[Callable[..., Any]] = None):
        if not isinstance(url, str) or not url:
            raise RTSPValidationError("URL must be set")
        self.mode = mode
        self.timeout = _seconds(timeout)
        self.connect_timeout = _seconds(connect_timeout) if connect_timeout is not None else self.timeout
        self.read_timeout = _seconds(read_timeout) if read_timeout is not None else self.timeout
        self.user_agent = user_agent
        self.debug = debug
        if debug:
            logger.setLevel(logging.DEBUG)
            log.setLevel(logging.DEBUG)

        self.host, user_in_url, pwd_in_url, self.port, self.path = parse_rtsp_url(url, mode)
        self.username = username if username is not None else user_in_url
        self.password = password if password is not None else pwd_in_url
        self.url = strip_userinfo(url)
        self._authorization = authorization_for(self.username, self.password)
        self.transport_factory = transport_factory or TCPTransport

        self._cseq = CSeqCounter()
        self._lock = threading.RLock()
        self._state = SessionState.IDLE
        self._session_id: Optional[str] = None

        # hooks
        self.on_request: Optional[Callable[[RTSPRequest], Any]] = None
        self.on_response: Optional[Callable[[RTSPResponse], Any]] = None
        self.on_error: Optional[Callable[[Exception], Any]] = None

    @classmethod
    def builder(cls) -> "RTSPSessionBuilder":
        return RTSPSessionBuilder()

    # introspection
    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def session_id(self) -> Optional[str]:
        return self._session_id

    @property
    def cseq(self) -> int:
        return self._cseq.value

    @property
    def is_connected(self) -> bool:
        return self._state in _ACTIVE

    @property
    def is_streaming(self) -> bool:
        return self._state is SessionState.STREAMING

    @property
    def is_closed(self) -> bool:
        return self._state is SessionState.CLOSED

    # helpers
    def _set_state(self, new_state: SessionState) -> None:
        if new_state is not self._state:
            log.info('RTSP session %s: %s -> %s', self.url, self._state.value, new_state.value)
            self._state = new_state

    def _require_open(self) -> None:
        if self._state is SessionState.CLOSED:
            raise RTSPStateError('RTSP session is closed')

    def _require(self, action: str, *allowed: SessionState) -> None:
        self._require_open()
        if self._state not in allowed:
            raise RTSPStateError(f'{action} not allowed in state {self._state.value!r}')

    def _build_request(self, method: RTSPMethod, url: Optional[str] = None,
                       headers: Optional[Dict[str, str]] = None,
                       body: Optional[str] = None, range: Optional[str] = None) -> RTSPRequest:
        hdrs: Dict[str, str] = {}
        if self._authorization:
            hdrs['Authorization'] = self._authorization
        if headers:
            hdrs.update(headers)
        return RTSPRequest(method=method,
                           url=url or self.url,
                           cseq=self._cseq.next(),
                           session_id=self._session_id,
                           range=range,
                           body=body,
                           headers=hdrs,
                           user_agent=self.user_agent,
                           mode=self.mode)

    def _call_hook(self, hook: Optional[Callable[[Any], Any]], arg: Any) -> None:
        # a failing hook must not interrupt the exchange or the state change after it
        if not hook:
            return
        try:
            hook(arg)
        except Exception as e:
            log.warning('RTSP hook %r raised: %s', hook, e, exc_info=True)
            if self.on_error:
                self.on_error(e)

    def _exchange(self, request: RTSPRequest) -> RTSPResponse:
        self._call_hook(self.on_request, request)
        payload = format_request(request)
        log.debug('>>> REQUEST >>>\n%s', payload.decode('utf-8', errors='replace'))
        transport = self.transport_factory(self.host, self.port,
                                           connect_timeout=self.connect_timeout,
                                           read_timeout=self.read_timeout)
        try:
            transport.connect()
            transport.send(payload)
            data = transport.receive()
        except OSError as exc:
            raise RTSPConnectionError(f'{request.method.value} {request.url} failed: {exc}') from exc
        finally:
            transport.close()
        response = parse_response(data)
        raw = response.raw or ''
        log.debug('<<< RESPONSE <<<\n%s', raw if len(raw) < 2000 else raw[:2000] + '...(truncated)')
        self._call_hook(self.on_response, response)
        return response

    def _send(self, method: RTSPMethod, **kwargs) -> RTSPResponse:
        return self._exchange(self._build_request(method, **kwargs))

    @staticmethod
    def _expect_success(action: str, response: RTSPResponse) -> RTSPResponse:
        if not response.successful:
            raise RTSPProtocolError(f'{action} failed: {response.describe()}', response)
        return response

    # lifecycle
    def connect(self) -> None:
        """Send DESCRIBE and, on a 2xx reply, enter CONNECTED with the server's token."""
        with self._lock:
            self._require('connect', SessionState.IDLE)
            response = self._describe()
            if not response.successful:
                raise RTSPProtocolError(f'Failed to connect: {response.describe()}', response)
            self._session_id = response.session_token
            self._set_state(SessionState.CONNECTED)

    def _describe(self) -> RTSPResponse:
        return self._send(RTSPMethod.DESCRIBE, headers={'Accept': 'application/sdp'})

    def describe(self) -> RTSPResponse:
        with self._lock:
            self._require_open()
            return self._describe()

    def describe_sdp(self) -> SDPInfo:
        """DESCRIBE and parse the body. The result is not attached to the session."""
        response = self._expect_success('DESCRIBE', self.describe())
        return parse_sdp(response.body)

    def options(self) -> RTSPResponse:
        with self._lock:
            self._require_open()
            return self._send(RTSPMethod.OPTIONS)

    def setup(self, track_index: int, transport: Optional[str] = None,
              control: Optional[str] = None) -> RTSPResponse:
        """SETUP one track; ``control`` is the track's SDP control attribute, if any."""
        with self._lock:
            self._require('SETUP', *_ACTIVE)
            target = resolve_control_url(self.url, control)
            log.debug('SETUP track %d at %s', track_index, target)
            headers = {'Transport': transport} if transport else None
            response = self._expect_success('Setup', self._send(RTSPMethod.SETUP, url=target, headers=headers))
            if not self._session_id and response.session_token:
                self._session_id = response.session_token
            return response

    def play(self, range: Optional[str] = DEFAULT_RANGE) -> RTSPResponse:
        with self._lock:
            self._require('PLAY', *_ACTIVE)
            response = self._expect_success('Play', self._send(RTSPMethod.PLAY, range=range))
            self._set_state(SessionState.STREAMING)
            return response

    def pause(self) -> RTSPResponse:
        with self._lock:
            self._require('PAUSE', SessionState.STREAMING)
            response = self._expect_success('Pause', self._send(RTSPMethod.PAUSE))
            self._set_state(SessionState.PAUSED)
            return response

    def resume(self) -> RTSPResponse:
        return self.play()

    def teardown(self) -> Optional[RTSPResponse]:
        """Send TEARDOWN whatever its outcome and close the session.

        Returns None when the session was already closed.
        """
        with self._lock:
            if self._state is SessionState.CLOSED:
                log.debug('TEARDOWN on closed session %s - nothing to do', self.url)
                return None
            self._require('TEARDOWN', *_ACTIVE)
            try:
                response = self._send(RTSPMethod.TEARDOWN)
                if not response.successful:
                    log.warning('TEARDOWN answered %s - closing anyway', response.describe())
            finally:
                self.close()
            return response

    def get_parameter(self, name: Optional[str] = None) -> RTSPResponse:
        """GET_PARAMETER; without a name it is an empty keep-alive request."""
        with self._lock:
            self._require('GET_PARAMETER', *_ACTIVE)
            headers = {'Content-Type': 'text/parameters'} if name else None
            return self._expect_success('GET_PARAMETER',
                                        self._send(RTSPMethod.GET_PARAMETER, headers=headers, body=name or None))

    def set_parameter(self, name: str, value: str) -> RTSPResponse:
        with self._lock:
            self._require('SET_PARAMETER', *_ACTIVE)
            return self._expect_success('SET_PARAMETER',
                                        self._send(RTSPMethod.SET_PARAMETER,
                                                   headers={'Content-Type': 'text/parameters'},
                                                   body=f'{name}={value}'))

    def record(self) -> RTSPResponse:
        with self._lock:
            self._require('RECORD', *_ACTIVE)
            return self._expect_success('RECORD', self._send(RTSPMethod.RECORD))

    def close(self) -> None:
        with self._lock:
            self._set_state(SessionState.CLOSED)

    def __enter__(self) -> "RTSPSession":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def __repr__(self) -> str:
        return f'RTSPSession(url={self.url!r}, state={self._state.value!r}, session_id={self._session_id!r})'


class RTSPSessionBuilder:
    """Fluent construction of an :class:`RTSPSession`; only the URL is required."""

    def __init__(self):
        self._url: Optional[str] = None
        self._kwargs: Dict[str, Any] = {}

    def url(self, url: str) -> "RTSPSessionBuilder":
        self._url = url
        return self

    def timeout(self, timeout: Seconds) -> "RTSPSessionBuilder":
        self._kwargs['timeout'] = timeout
        return self

    def connect_timeout(self, timeout: Seconds) -> "RTSPSessionBuilder":
        self._kwargs['connect_timeout'] = timeout
        return self

    def read_timeout(self, timeout: Seconds) -> "RTSPSessionBuilder":
        self._kwargs['read_timeout'] = timeout
        return self

    def credentials(self, username: str, password: str) -> "RTSPSessionBuilder":
        self._kwargs['username'] = username
        self._kwargs['password'] = password
        return self

    def user_agent(self, user_agent: str) -> "RTSPSessionBuilder":
        self._kwargs['user_agent'] = user_agent
        return self

    def mode(self, mode: str) -> "RTSPSessionBuilder":
        self._kwargs['mode'] = mode
        return self

    def debug(self, debug: bool = True) -> "RTSPSessionBuilder":
        self._kwargs['debug'] = debug
        return self

    def transport_factory(self, factory: Callable[..., Any]) -> "RTSPSessionBuilder":
        self._kwargs['transport_factory'] = factory
        return self

    def build(self) -> RTSPSession:
        if not self._url:
            raise RTSPValidationError("URL must be set")
        return RTSPSession(self._url, **self._kwargs)
