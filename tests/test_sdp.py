import pytest
from rtspkit.sdp import MediaType, parse_sdp
from rtspkit.exceptions import SDPParseError

EXAMPLE_SDP = (
    "v=0\n"
    "o=- 123 1 IN IP4 127.0.0.1\n"
    "s=Example Stream\n"
    "m=video 0 RTP/AVP 96\n"
    "a=rtpmap:96 H264/90000\n"
    "a=control:trackID=0\n"
    "m=audio 0 RTP/AVP 97\n"
    "a=rtpmap:97 MPEG4-GENERIC/48000\n"
    "a=control:trackID=1\n"
)

CAMERA_SDP = (
    "v=0\r\n"
    "o=- 1580255409340549 1580255409340549 IN IP4 192.168.201.14\r\n"
    "s=Media Presentation\r\n"
    "t=0 0\r\n"
    "a=control:rtsp://192.168.201.14:554/h264/ch1/sub/av_stream/\r\n"
    "m=video 0 RTP/AVP 96\r\n"
    "c=IN IP4 0.0.0.0\r\n"
    "a=recvonly\r\n"
    "a=control:rtsp://192.168.201.14:554/h264/ch1/sub/av_stream/trackID=1\r\n"
    "a=rtpmap:96 H264/90000\r\n"
    "a=fmtp:96 profile-level-id=420029; packetization-mode=1; sprop-parameter-sets=Z00AHpY1QWAk03AQEBQAABwgAAV+QBA=,aO48gA==\r\n"
    "m=audio 0 RTP/AVP 8\r\n"
    "a=rtpmap:8 PCMA/8000/1\r\n"
)

def test_parse_example_stream():
    info = parse_sdp(EXAMPLE_SDP)
    assert info.version == "0"
    assert info.session_name == "Example Stream"
    assert info.origin == "o=- 123 1 IN IP4 127.0.0.1"
    assert len(info.media) == 2
    video, audio = info.media
    assert video.media_type is MediaType.VIDEO
    assert video.control == "trackID=0"
    assert video.rtpmap == "96 H264/90000"
    assert video.fmtp is None
    assert audio.media_type is MediaType.AUDIO
    assert audio.rtpmap == "97 MPEG4-GENERIC/48000"
    assert audio.control == "trackID=1"

def test_media_line_fields():
    video = parse_sdp(EXAMPLE_SDP).media[0]
    assert video.port == 0
    assert video.protocol == "RTP/AVP"
    assert video.formats == ("96",)

def test_no_media_lines():
    info = parse_sdp("v=0\no=- 1 1 IN IP4 0.0.0.0\ns=Empty\n")
    assert info.media == ()
    assert not info.has_media()
    assert info.video is None
    assert info.audio is None

@pytest.mark.parametrize("text", [None, "", "   ", "\r\n\t"])
def test_blank_input_raises(text):
    with pytest.raises(SDPParseError):
        parse_sdp(text)

def test_unknown_media_type_is_application():
    info = parse_sdp("v=0\nm=whiteboard 0 RTP/AVP 98\n")
    assert info.media[0].media_type is MediaType.APPLICATION

@pytest.mark.parametrize("token, expected", [
    ("VIDEO", MediaType.VIDEO),
    ("Audio", MediaType.AUDIO),
    ("data", MediaType.DATA),
    ("application", MediaType.APPLICATION),
    ("text", MediaType.APPLICATION),
])
def test_media_type_from_token(token, expected):
    assert MediaType.from_token(token) is expected

def test_defaults_when_lines_missing():
    info = parse_sdp("m=audio 5004 RTP/AVP 0\n")
    assert info.version == "0"
    assert info.origin == "-"
    assert info.session_name == ""
    audio = info.audio
    assert audio.port == 5004
    assert audio.rtpmap is None
    assert audio.control is None
    assert audio.payload_type == 0
    assert audio.encoding_name is None

def test_malformed_media_line_is_skipped():
    info = parse_sdp("v=0\nm=video\na=control:trackID=0\nm=audio 0 RTP/AVP 0\n")
    assert len(info.media) == 1
    assert info.media[0].media_type is MediaType.AUDIO

def test_attributes_scoped_to_their_segment():
    info = parse_sdp(
        "v=0\n"
        "m=video 0 RTP/AVP 96\n"
        "a=rtpmap:96 H264/90000\n"
        "m=audio 0 RTP/AVP 0\n"
        "a=control:trackID=1\n"
    )
    video, audio = info.media
    assert video.control is None
    assert audio.rtpmap is None
    assert audio.control == "trackID=1"

def test_camera_sdp():
    info = parse_sdp(CAMERA_SDP)
    assert info.session_name == "Media Presentation"
    assert info.timing == "0 0"
    assert info.control == "rtsp://192.168.201.14:554/h264/ch1/sub/av_stream/"
    video = info.video
    assert video.control == "rtsp://192.168.201.14:554/h264/ch1/sub/av_stream/trackID=1"
    assert video.fmtp.startswith("96 profile-level-id=420029")
    assert video.attributes["recvonly"] == ""
    assert video.payload_type == 96
    assert video.encoding_name == "H264"
    assert video.clock_rate == 90000
    assert info.audio.encoding_name == "PCMA"
    assert info.audio.clock_rate == 8000

def test_fmtp_does_not_leak_into_session_name():
    info = parse_sdp("v=0\nm=video 0 RTP/AVP 96\na=fmtp:96 sprop-parameter-sets=Z00\n")
    assert info.session_name == ""

def test_media_by_type_case_insensitive():
    info = parse_sdp(EXAMPLE_SDP + "m=video 0 RTP/AVP 98\n")
    assert len(info.media_by_type("VIDEO")) == 2
    assert len(info.media_by_type(MediaType.AUDIO)) == 1
    assert info.media_by_type("data") == []
    assert info.video is info.media[0]

def test_port_with_count():
    info = parse_sdp("v=0\nm=video 49170/2 RTP/AVP 31\n")
    assert info.video.port == 49170

def test_indented_lines():
    info = parse_sdp("""
        v=0
        s=Indented
        m=video 0 RTP/AVP 96
        a=control:trackID=0
    """)
    assert info.session_name == "Indented"
    assert info.video.control == "trackID=0"

def test_track_url():
    video, audio = parse_sdp(EXAMPLE_SDP).media
    assert video.track_url("rtsp://cam/live") == "rtsp://cam/live/trackID=0"
    camera = parse_sdp(CAMERA_SDP).video
    assert camera.track_url("rtsp://ignored/") == camera.control

def test_parsed_sdp_is_hashable():
    info = parse_sdp(EXAMPLE_SDP)
    assert hash(info) == hash(parse_sdp(EXAMPLE_SDP))
    assert info in {info}
    assert isinstance(hash(parse_sdp("v=0\nm=video 0 RTP/AVP 96\n")), int)

def test_media_description_is_read_only():
    video = parse_sdp(CAMERA_SDP).video
    assert isinstance(video.formats, tuple)
    with pytest.raises(TypeError):
        video.attributes["recvonly"] = "x"
    with pytest.raises(AttributeError):
        video.control = "trackID=9"
