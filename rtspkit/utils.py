"""Helpers shared by the codec and the session: the package logger, RTSP URL
splitting and token checks.

parse_rtsp_url returns a 5-tuple:
    (host, username_or_None, password_or_None, port, path)

The port falls back to the scheme default (554 for rtsp, 322 for rtsps)
when the URL carries none.
"""

from __future__ import annotations

import logging
import re
from typing import Optional, Tuple
from urllib.parse import urlparse, urlunparse

from .exceptions import RTSPValidationError

logger = logging.getLogger("rtspkit")
logger.addHandler(logging.NullHandler())

DEFAULT_PORT = 554
DEFAULT_TLS_PORT = 322

_TOKEN_RE = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")
_SCHEME_RE = re.compile(r"^rtsps?://", re.IGNORECASE)

def validate_token(name: str, value: str, mode: str = "strict") -> None:
    """Check ``value`` against the RFC 2326 token grammar.

    ``name`` only labels the error message. In lenient mode a bad token is
    logged and let through; a non-str value is rejected in either mode.
    """
    if not isinstance(value, str):
        raise RTSPValidationError(f"{name} must be a string, got {type(value).__name__}")
    if _TOKEN_RE.match(value):
        return
    if mode != "strict":
        logger.warning("lenient: %s %r is not an RTSP token - sending it anyway", name, value)
        return
    raise RTSPValidationError(f"Invalid {name}: {value!r}")

def parse_rtsp_url(url: str, mode: str = "strict") -> Tuple[str, Optional[str], Optional[str], int, str]:
    """Parse RTSP/RTSPS URL.

    Returns:
        (host, username, password, port, path)
    Raises:
        RTSPValidationError on invalid URL in strict mode.
    """
    if not isinstance(url, str):
        raise RTSPValidationError("url must be a string")
    parsed = urlparse(url)
    scheme = (parsed.scheme or "").lower()
    if scheme not in ("rtsp", "rtsps"):
        if mode == "strict":
            raise RTSPValidationError(f"Invalid RTSP scheme: {parsed.scheme!r}")
        else:
            logger.warning("lenient: invalid scheme in URL %r", url)
            return "", None, None, DEFAULT_PORT, "/"

    username = parsed.username
    password = parsed.password

    # hostname strips the port and IPv6 brackets
    host = parsed.hostname or ""

    default_port = DEFAULT_TLS_PORT if scheme == "rtsps" else DEFAULT_PORT
    try:
        port = parsed.port or default_port
    except ValueError as exc:
        if mode == "strict":
            raise RTSPValidationError(f"Invalid port in URL {url!r}") from exc
        logger.warning("lenient: invalid port in URL %r - using %d", url, default_port)
        port = default_port

    path = parsed.path or "/"

    return host, username, password, int(port), path

def strip_userinfo(url: str) -> str:
    """Drop ``user:password@`` from a URL so credentials never hit the request line."""
    parsed = urlparse(url)
    if "@" not in parsed.netloc:
        return url
    netloc = parsed.netloc.rsplit("@", 1)[1]
    return urlunparse(parsed._replace(netloc=netloc))

def resolve_control_url(base_url: str, control: Optional[str]) -> str:
    """Resolve an SDP ``a=control`` value against the presentation URL.

    Absolute rtsp(s) URLs are used as-is; ``*`` or an empty value addresses
    the presentation itself; anything else is appended as a path segment.
    """
    if not control or control == "*":
        return base_url
    if _SCHEME_RE.match(control):
        return control
    return base_url.rstrip("/") + "/" + control.lstrip("/")
