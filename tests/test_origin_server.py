from __future__ import annotations

import gzip
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest

from rubyedge.config import ProxyConfig, ReadingConfig
from rubyedge.hiragana import HiraganaResponse
from rubyedge.origin import OriginClient
from rubyedge.pipeline import ProxyPipeline

LOGO = gzip.compress(b"\x89PNG\r\n\x1a\n-logo-bytes")
GZIP_PAGE = gzip.compress("<p>日本</p>".encode("utf-8"))


class StubConverter:
    def __init__(self, converted: str = "") -> None:
        self.converted = converted
        self.sentences: list[str] = []

    def convert(self, sentence: str) -> HiraganaResponse:
        self.sentences.append(sentence)
        return HiraganaResponse(converted=self.converted, output_type="hiragana", request_id="req")


class OriginHandler(BaseHTTPRequestHandler):
    seen: list[tuple[str, str | None]] = []

    def log_message(self, format, *args) -> None:
        pass

    def _send(self, status: int, headers: list[tuple[str, str]], body: bytes) -> None:
        self.send_response(status)
        for name, value in headers:
            self.send_header(name, value)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        if self.command != "HEAD":
            self.wfile.write(body)

    def do_GET(self) -> None:
        self.seen.append((self.path, self.headers.get("Cookie")))
        host = self.headers.get("Host")
        if self.path == "/login":
            self._send(
                200,
                [
                    ("Content-Type", "text/plain"),
                    ("Set-Cookie", "session=abc; Path=/"),
                    ("Set-Cookie", "pref=ja; Path=/"),
                ],
                b"welcome",
            )
        elif self.path == "/logo.png":
            self._send(200, [("Content-Type", "image/png"), ("Content-Encoding", "gzip")], LOGO)
        elif self.path == "/gzip":
            self._send(200, [("Content-Type", "text/html"), ("Content-Encoding", "gzip")], GZIP_PAGE)
        elif self.path == "/old":
            self._send(301, [("Location", f"http://{host}/page")], b"")
        elif self.path == "/page":
            self._send(200, [("Content-Type", "text/html; charset=utf-8")], "<h1>東京</h1>".encode("utf-8"))
        else:
            self._send(404, [("Content-Type", "text/plain")], b"missing")

    do_HEAD = do_GET


@pytest.fixture
def origin_url():
    OriginHandler.seen = []
    server = ThreadingHTTPServer(("127.0.0.1", 0), OriginHandler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield f"http://127.0.0.1:{server.server_address[1]}"
    finally:
        server.shutdown()
        server.server_close()
        thread.join()


def _pipeline(origin_url: str, converter: StubConverter | None = None) -> ProxyPipeline:
    config = ProxyConfig(origin_url=origin_url, reading=ReadingConfig(app_id="app"), timeout=5.0)
    return ProxyPipeline(config, converter=converter or StubConverter())


def _values(headers: list[tuple[str, str]], name: str) -> list[str]:
    return [value for key, value in headers if key.lower() == name]


def test_cookies_from_one_request_are_not_sent_on_the_next(origin_url: str) -> None:
    pipeline = _pipeline(origin_url)
    first = pipeline.handle("GET", "/login")
    pipeline.handle("GET", "/page")
    pipeline.handle("GET", "/login")
    assert _values(first.headers, "set-cookie") == ["session=abc; Path=/", "pref=ja; Path=/"]
    assert OriginHandler.seen == [("/login", None), ("/page", None), ("/login", None)]


def test_client_cookie_header_is_forwarded_as_given(origin_url: str) -> None:
    pipeline = _pipeline(origin_url)
    pipeline.handle("GET", "/login")
    pipeline.handle("GET", "/page", headers=[("Cookie", "mine=1")])
    assert OriginHandler.seen[-1] == ("/page", "mine=1")


def test_origin_client_sessions_do_not_share_cookies(origin_url: str) -> None:
    client = OriginClient(origin_url.split("://", 1)[1])
    client.fetch("GET", f"{origin_url}/login")
    client.fetch("GET", f"{origin_url}/page")
    assert OriginHandler.seen[-1] == ("/page", None)


def test_encoded_passthrough_is_byte_identical(origin_url: str) -> None:
    result = _pipeline(origin_url).handle("GET", "/logo.png")
    assert not result.annotated
    assert result.body == LOGO
    assert _values(result.headers, "content-encoding") == ["gzip"]
    assert _values(result.headers, "content-length") == [str(len(LOGO))]


def test_gzip_html_from_origin_is_annotated(origin_url: str) -> None:
    converter = StubConverter("にほん")
    result = _pipeline(origin_url, converter).handle("GET", "/gzip")
    assert result.annotated
    assert result.body.decode("utf-8") == "<p><ruby><rb>日本</rb><rt>にほん</rt></ruby></p>"
    assert converter.sentences == ["日本"]


def test_same_host_redirect_is_followed_once(origin_url: str) -> None:
    converter = StubConverter("とうきょう")
    result = _pipeline(origin_url, converter).handle("GET", "/old")
    assert result.status == 200
    assert result.body.decode("utf-8") == "<h1><ruby><rb>東京</rb><rt>とうきょう</rt></ruby></h1>"
    assert [path for path, _ in OriginHandler.seen] == ["/old", "/page"]
