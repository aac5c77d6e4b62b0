"""SDP parser suitable for RTSP DESCRIBE results (RFC 4566 subset).

Each field is extracted independently with a line-anchored pattern; a missing
or malformed line leaves that field at its default instead of failing the
whole parse.
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple, Union

from .exceptions import SDPParseError
from .utils import resolve_control_url

# lines may be indented; every pattern tolerates leading blanks
_VERSION_RE = re.compile(r"^[ \t]*v=([0-9]+)", re.MULTILINE)
_SESSION_NAME_RE = re.compile(r"^[ \t]*s=([^\r\n]+)", re.MULTILINE)
_ORIGIN_RE = re.compile(r"^[ \t]*(o=[^\r\n]*)", re.MULTILINE)
_TIMING_RE = re.compile(r"^[ \t]*t=([^\r\n]*)", re.MULTILINE)
_MEDIA_SPLIT_RE = re.compile(r"^(?=[ \t]*m=)", re.MULTILINE)
_MEDIA_RE = re.compile(r"^[ \t]*m=(\w+)[ \t]+(\d+)(?:/\d+)?[ \t]+(\S+)[ \t]*([^\r\n]*)")
_ATTRIBUTE_RE = re.compile(r"^[ \t]*a=([^:\r\n]+):?([^\r\n]*)", re.MULTILINE)
_RTPMAP_RE = re.compile(r"^(\d+)\s+([^/\s]+)(?:/(\d+))?")


class MediaType(enum.Enum):
    VIDEO = "video"
    AUDIO = "audio"
    APPLICATION = "application"
    DATA = "data"

    @classmethod
    def from_token(cls, token: str) -> "MediaType":
        """Map an ``m=`` media token; anything unrecognised is APPLICATION."""
        try:
            return cls(token.lower())
        except ValueError:
            return cls.APPLICATION

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class MediaDescription:
    """One ``m=`` line and the attributes that follow it."""

    media_type: MediaType
    port: int
    protocol: str
    formats: Tuple[str, ...]
    rtpmap: Optional[str] = None
    control: Optional[str] = None
    fmtp: Optional[str] = None
    attributes: Mapping[str, str] = field(default_factory=dict, hash=False)

    def __post_init__(self):
        object.__setattr__(self, "formats", tuple(self.formats))
        object.__setattr__(self, "attributes", MappingProxyType(dict(self.attributes)))

    @property
    def payload_type(self) -> Optional[int]:
        m = _RTPMAP_RE.match(self.rtpmap or "")
        if m:
            return int(m.group(1))
        if self.formats and self.formats[0].isdigit():
            return int(self.formats[0])
        return None

    @property
    def encoding_name(self) -> Optional[str]:
        m = _RTPMAP_RE.match(self.rtpmap or "")
        return m.group(2) if m else None

    @property
    def clock_rate(self) -> Optional[int]:
        m = _RTPMAP_RE.match(self.rtpmap or "")
        if m and m.group(3):
            return int(m.group(3))
        return None

    def track_url(self, base_url: str) -> str:
        """URL to address this track in SETUP."""
        return resolve_control_url(base_url, self.control)


@dataclass(frozen=True)
class SDPInfo:
    version: str = "0"
    origin: str = "-"
    session_name: str = ""
    media: Tuple[MediaDescription, ...] = ()
    control: Optional[str] = None
    timing: Optional[str] = None

    def has_media(self) -> bool:
        return len(self.media) > 0

    def media_by_type(self, media_type: Union[str, MediaType]) -> List[MediaDescription]:
        wanted = media_type.value if isinstance(media_type, MediaType) else str(media_type).lower()
        return [m for m in self.media if m.media_type.value == wanted]

    @property
    def video(self) -> Optional[MediaDescription]:
        videos = self.media_by_type(MediaType.VIDEO)
        return videos[0] if videos else None

    @property
    def audio(self) -> Optional[MediaDescription]:
        audios = self.media_by_type(MediaType.AUDIO)
        return audios[0] if audios else None

    def __str__(self) -> str:
        return f"SDPInfo(version={self.version!r}, origin={self.origin!r}, media_count={len(self.media)})"


def _extract_attribute(section: str, name: str) -> Optional[str]:
    m = re.search(r"^[ \t]*a=" + re.escape(name) + r":([^\r\n]*)", section, re.MULTILINE)
    if m:
        return m.group(1).strip()
    return None


def _attributes(section: str) -> Dict[str, str]:
    attrs: Dict[str, str] = {}
    for m in _ATTRIBUTE_RE.finditer(section):
        attrs.setdefault(m.group(1).strip(), m.group(2).strip())
    return attrs


def _parse_media(section: str) -> Optional[MediaDescription]:
    m = _MEDIA_RE.match(section)
    if not m:
        return None
    type_token, port, proto, formats = m.groups()
    return MediaDescription(
        media_type=MediaType.from_token(type_token),
        port=int(port),
        protocol=proto,
        formats=tuple(formats.split()),
        rtpmap=_extract_attribute(section, "rtpmap"),
        control=_extract_attribute(section, "control"),
        fmtp=_extract_attribute(section, "fmtp"),
        attributes=_attributes(section),
    )


def parse_sdp(sdp_text: Optional[str]) -> SDPInfo:
    """Parse SDP text into an :class:`SDPInfo`.

    Raises:
        SDPParseError: only when the input is None or blank.
    """
    if sdp_text is None or not str(sdp_text).strip():
        raise SDPParseError("SDP content cannot be null or empty")
    text = str(sdp_text)

    m = _VERSION_RE.search(text)
    version = m.group(1) if m else "0"

    m = _SESSION_NAME_RE.search(text)
    session_name = m.group(1).strip() if m else ""

    m = _ORIGIN_RE.search(text)
    origin = m.group(1).strip() if m else "-"

    sections = _MEDIA_SPLIT_RE.split(text)
    # first chunk is the session-level block (empty when text starts with m=)
    session_block = sections[0] if not sections[0].lstrip(" \t").startswith("m=") else ""

    m = _TIMING_RE.search(session_block)
    timing = m.group(1).strip() if m else None

    media: List[MediaDescription] = []
    for section in sections:
        if not section.lstrip(" \t").startswith("m="):
            continue
        desc = _parse_media(section)
        if desc is not None:
            media.append(desc)

    return SDPInfo(
        version=version,
        origin=origin,
        session_name=session_name,
        media=tuple(media),
        control=_extract_attribute(session_block, "control"),
        timing=timing,
    )
