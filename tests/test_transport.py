import socket
import socketserver
import threading
import time

import pytest
from rtspkit.session import RTSPSession, SessionState
from rtspkit.transport import TCPTransport
from rtspkit.exceptions import RTSPConnectionError

TIMEOUT = 5

SDP_BODY = (
    "v=0\r\n"
    "o=- 1 1 IN IP4 127.0.0.1\r\n"
    "s=Loopback\r\n"
    "m=video 0 RTP/AVP 96\r\n"
    "a=rtpmap:96 H264/90000\r\n"
    "a=control:trackID=0\r\n"
)


class RTSPHandler(socketserver.StreamRequestHandler):
    """Answers one request per connection and keeps the socket open until the client closes."""

    def handle(self):
        lines = []
        while True:
            line = self.rfile.readline()
            if not line or line in (b"\r\n", b"\n"):
                break
            lines.append(line.decode().rstrip("\r\n"))
        if not lines:
            return
        self.server.seen.append(lines)
        method = lines[0].split(" ", 1)[0]
        cseq = next(l.split(":", 1)[1].strip() for l in lines if l.lower().startswith("cseq:"))
        headers = [f"CSeq: {cseq}"]
        body = ""
        if method == "DESCRIBE":
            headers.append("Session: 4F2A;timeout=60")
            headers.append("Content-Type: application/sdp")
            body = SDP_BODY
        headers.append(f"Content-Length: {len(body.encode())}")
        self.wfile.write(("RTSP/1.0 200 OK\r\n" + "\r\n".join(headers) + "\r\n\r\n" + body).encode())
        self.wfile.flush()
        # hold the connection until the client hangs up
        self.rfile.read()


class SilentHandler(socketserver.StreamRequestHandler):
    """Accepts the request and never answers."""

    def handle(self):
        self.rfile.read()


def serve(handler):
    server = socketserver.ThreadingTCPServer(("127.0.0.1", 0), handler)
    server.daemon_threads = True
    server.seen = []
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    return server


@pytest.fixture
def rtsp_server():
    server = serve(RTSPHandler)
    try:
        yield server
    finally:
        server.shutdown()
        server.server_close()


@pytest.fixture
def silent_server():
    server = serve(SilentHandler)
    try:
        yield server
    finally:
        server.shutdown()
        server.server_close()


def free_port():
    s = socket.socket()
    s.bind(("127.0.0.1", 0))
    port = s.getsockname()[1]
    s.close()
    return port


def test_receive_frames_by_content_length(rtsp_server):
    host, port = rtsp_server.server_address
    with TCPTransport(host, port, connect_timeout=TIMEOUT, read_timeout=TIMEOUT) as t:
        t.send(b"DESCRIBE rtsp://127.0.0.1/x RTSP/1.0\r\nCseq: 9\r\n\r\n")
        data = t.receive()
    text = data.decode()
    assert text.startswith("RTSP/1.0 200 OK\r\n")
    assert "CSeq: 9\r\n" in text
    assert text.endswith(SDP_BODY)

def test_connect_refused():
    t = TCPTransport("127.0.0.1", free_port(), connect_timeout=TIMEOUT)
    with pytest.raises(RTSPConnectionError) as excinfo:
        t.connect()
    assert isinstance(excinfo.value.__cause__, OSError)

def test_bounded_reconnect():
    t = TCPTransport("127.0.0.1", free_port(), connect_timeout=TIMEOUT,
                     auto_reconnect=True, max_reconnect_attempts=2, reconnect_delay=0)
    with pytest.raises(RTSPConnectionError):
        t.connect()
    assert t.reconnect_count == 2

def test_send_before_connect():
    t = TCPTransport("127.0.0.1", 554)
    with pytest.raises(RTSPConnectionError):
        t.send(b"OPTIONS * RTSP/1.0\r\n\r\n")
    with pytest.raises(RTSPConnectionError):
        t.receive()

def test_close_is_idempotent_and_final(rtsp_server):
    host, port = rtsp_server.server_address
    t = TCPTransport(host, port, connect_timeout=TIMEOUT, read_timeout=TIMEOUT)
    t.connect()
    assert t.connected
    t.close()
    t.close()
    t.abort()
    assert not t.connected
    with pytest.raises(RTSPConnectionError):
        t.connect()

def test_session_over_loopback(rtsp_server):
    host, port = rtsp_server.server_address
    sess = RTSPSession(f"rtsp://{host}:{port}/live", timeout=TIMEOUT)
    sess.connect()
    assert sess.session_id == "4F2A"
    sdp = sess.describe_sdp()
    sess.setup(0, "RTP/AVP/TCP;unicast;interleaved=0-1", control=sdp.video.control)
    sess.play()
    assert sess.state is SessionState.STREAMING
    sess.teardown()
    assert sess.is_closed
    methods = [req[0].split(" ", 1)[0] for req in rtsp_server.seen]
    assert methods == ["DESCRIBE", "DESCRIBE", "SETUP", "PLAY", "TEARDOWN"]
    assert rtsp_server.seen[2][0] == f"SETUP rtsp://{host}:{port}/live/trackID=0 RTSP/1.0"

def test_abort_wakes_blocked_receive(silent_server):
    host, port = silent_server.server_address
    t = TCPTransport(host, port, connect_timeout=TIMEOUT, read_timeout=TIMEOUT)
    t.connect()
    t.send(b"OPTIONS * RTSP/1.0\r\nCseq: 1\r\n\r\n")
    outcome = []

    def read():
        try:
            outcome.append(t.receive())
        except RTSPConnectionError as exc:
            outcome.append(exc)

    reader = threading.Thread(target=read, daemon=True)
    started = time.monotonic()
    reader.start()
    time.sleep(0.3)
    t.abort()
    reader.join(TIMEOUT)
    assert not reader.is_alive()
    assert time.monotonic() - started < 2
    assert outcome and not t.connected
