"""rtspkit - RTSP/1.0 client core

Public API:
  - RTSPSession / RTSPSessionBuilder: the client session state machine
  - RTSPRequest, RTSPResponse, format_request, parse_response: wire codec
  - parse_sdp, SDPInfo, MediaDescription, MediaType: SDP descriptor parser
  - TCPTransport: blocking per-exchange transport
"""

from .session import RTSPSession, RTSPSessionBuilder, SessionState, CSeqCounter
from .wire import RTSPMethod, RTSPRequest, RTSPResponse, format_request, parse_response
from .sdp import MediaDescription, MediaType, SDPInfo, parse_sdp
from .transport import TCPTransport
from .utils import parse_rtsp_url
from .exceptions import *

__all__ = [
    "RTSPSession", "RTSPSessionBuilder", "SessionState", "CSeqCounter",
    "RTSPMethod", "RTSPRequest", "RTSPResponse", "format_request", "parse_response",
    "MediaDescription", "MediaType", "SDPInfo", "parse_sdp",
    "TCPTransport",
    "parse_rtsp_url",
    # exceptions
    "RTSPError", "RTSPValidationError", "RTSPConnectionError", "RTSPProtocolError",
    "RTSPStateError", "SDPParseError",
]
