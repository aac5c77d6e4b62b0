"""RTSP/1.0 wire codec: request values, response values and their framing.

format_request() and parse_response() are pure functions. The decoder never
raises: empty or malformed input becomes a response with status code 0 that
callers can branch on.
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Union

from .exceptions import RTSPValidationError
from .utils import validate_token

RTSP_VERSION = "RTSP/1.0"
DEFAULT_USER_AGENT = "rtspkit/1.0"
CRLF = "\r\n"

_LINE_BREAK_RE = re.compile(r"[\r\n]")


def _header_value(name: str, value) -> str:
    """Header values are single-line; a CR or LF would split the request."""
    value = str(value)
    if _LINE_BREAK_RE.search(value):
        raise RTSPValidationError(f"Header {name!r} contains a line break: {value!r}")
    return value


class RTSPMethod(enum.Enum):
    """Request methods defined by RFC 2326."""

    OPTIONS = "OPTIONS"
    DESCRIBE = "DESCRIBE"
    SETUP = "SETUP"
    PLAY = "PLAY"
    PAUSE = "PAUSE"
    TEARDOWN = "TEARDOWN"
    GET_PARAMETER = "GET_PARAMETER"
    SET_PARAMETER = "SET_PARAMETER"
    RECORD = "RECORD"
    ANNOUNCE = "ANNOUNCE"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class RTSPRequest:
    """A single RTSP request, immutable once built.

    ``headers`` holds the extra headers in insertion order. The session token
    and user agent are carried as their own fields and rendered ahead of the
    extra headers by :meth:`all_headers`.
    """

    method: RTSPMethod
    url: str
    cseq: int = 1
    session_id: Optional[str] = None
    range: Optional[str] = None
    body: Optional[str] = None
    headers: Mapping[str, str] = field(default_factory=dict, hash=False)
    user_agent: str = DEFAULT_USER_AGENT
    mode: str = "strict"

    def __post_init__(self):
        if not isinstance(self.url, str) or not self.url:
            raise RTSPValidationError("URL must be set")
        if isinstance(self.method, str):
            try:
                object.__setattr__(self, "method", RTSPMethod(self.method.upper()))
            except ValueError as exc:
                raise RTSPValidationError(f"Unknown RTSP method: {self.method!r}") from exc
        elif not isinstance(self.method, RTSPMethod):
            raise RTSPValidationError("method must be an RTSPMethod")
        if isinstance(self.cseq, bool) or not isinstance(self.cseq, int) or self.cseq < 0:
            raise RTSPValidationError(f"CSeq must be a non-negative integer, got {self.cseq!r}")
        headers = {}
        for name, value in (self.headers or {}).items():
            validate_token("header-name", name, self.mode)
            headers[name] = _header_value(name, value)
        for name, value in (("Session", self.session_id), ("User-Agent", self.user_agent),
                            ("Range", self.range)):
            if value:
                _header_value(name, value)
        if _LINE_BREAK_RE.search(self.url):
            raise RTSPValidationError(f"URL contains a line break: {self.url!r}")
        object.__setattr__(self, "headers", MappingProxyType(headers))

    def all_headers(self) -> Dict[str, str]:
        """Header map as written on the wire, between ``Cseq`` and ``Range``."""
        hdrs: Dict[str, str] = {}
        if self.session_id:
            hdrs["Session"] = self.session_id
        if self.user_agent:
            hdrs["User-Agent"] = self.user_agent
        hdrs.update(self.headers)
        return hdrs

    def to_text(self) -> str:
        lines = [f"{self.method.value} {self.url} {RTSP_VERSION}", f"Cseq: {self.cseq}"]
        lines.extend(f"{k}: {v}" for k, v in self.all_headers().items())
        if self.range:
            lines.append(f"Range: {self.range}")
        if self.body:
            lines.append(f"Content-Length: {len(self.body.encode('utf-8'))}")
        return CRLF.join(lines) + CRLF + CRLF + (self.body or "")


def format_request(request: RTSPRequest) -> bytes:
    return request.to_text().encode("utf-8")


@dataclass(frozen=True)
class RTSPResponse:
    status_code: int
    reason: str = ""
    headers: Mapping[str, str] = field(default_factory=dict, hash=False)
    body: str = ""
    error: Optional[str] = None
    raw: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "headers", MappingProxyType(dict(self.headers or {})))

    @classmethod
    def failure(cls, message: str, raw: Optional[str] = None) -> "RTSPResponse":
        return cls(status_code=0, error=message, raw=raw)

    @property
    def successful(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def ok(self) -> bool:
        return self.successful and self.error is None

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Look a header up by exact name, falling back to a case-insensitive match."""
        if name in self.headers:
            return self.headers[name]
        lowered = name.lower()
        for k, v in self.headers.items():
            if k.lower() == lowered:
                return v
        return default

    @property
    def session_token(self) -> Optional[str]:
        """Value of the ``Session`` header without its ``;timeout=`` parameters."""
        value = self.header("Session")
        if not value:
            return None
        return value.split(";", 1)[0].strip() or None

    @property
    def content_length(self) -> int:
        value = self.header("Content-Length")
        try:
            return int(value) if value is not None else len(self.body.encode("utf-8"))
        except ValueError:
            return len(self.body.encode("utf-8"))

    def describe(self) -> str:
        if self.error:
            return self.error
        return f"{self.status_code} {self.reason}".strip()


def parse_response(raw: Union[str, bytes, None]) -> RTSPResponse:
    """Decode a raw RTSP response. Never raises."""
    if raw is None:
        return RTSPResponse.failure("Empty response")
    if isinstance(raw, (bytes, bytearray)):
        text = bytes(raw).decode("utf-8", errors="replace")
    else:
        text = str(raw)
    if not text.strip():
        return RTSPResponse.failure("Empty response", raw=text)

    lines = text.split(CRLF)

    status_code = 0
    reason = ""
    parts = lines[0].strip().split(" ", 2)
    if len(parts) >= 2:
        try:
            status_code = int(parts[1])
        except ValueError:
            status_code = 0
        if len(parts) == 3:
            reason = parts[2]

    headers: Dict[str, str] = {}
    body_lines = []
    in_body = False
    for line in lines[1:]:
        if in_body:
            body_lines.append(line)
            continue
        line = line.strip()
        if not line:
            in_body = True
            continue
        colon = line.find(":")
        if colon > 0:
            headers[line[:colon].strip()] = line[colon + 1:].strip()

    while body_lines and not body_lines[-1]:
        body_lines.pop()
    body = "".join(line + CRLF for line in body_lines)

    return RTSPResponse(status_code=status_code, reason=reason, headers=headers, body=body, raw=text)
