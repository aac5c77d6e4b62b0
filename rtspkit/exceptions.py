"""Errors raised by rtspkit; catch RTSPError to handle all of them."""

class RTSPError(Exception):
    """Root of every rtspkit error."""
    pass

class RTSPValidationError(RTSPError):
    """A URL, header, CSeq or other caller-supplied value was rejected before any I/O."""
    pass

class RTSPConnectionError(RTSPError):
    """Transport-level errors (connect/send/receive)."""
    pass

class RTSPProtocolError(RTSPError):
    """Raised when the server answers a required step with a non-2xx status."""

    def __init__(self, message: str, response=None):
        super().__init__(message)
        self.response = response

class RTSPStateError(RTSPError):
    """Operation invoked in a session state that does not permit it."""
    pass

class SDPParseError(RTSPError):
    pass
