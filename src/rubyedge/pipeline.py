from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Mapping

from .config import ProxyConfig
from .errors import DecodeError, UnsupportedMethod
from .hiragana import HiraganaClient, ReadingConverter, resolve_readings
from .origin import HOP_BY_HOP_HEADERS, OriginClient, OriginResponse, rewrite_request_headers
from .ruby import reassemble
from .segmenter import readings_needed, segment_document

__all__ = [
    "HTML_MEDIA_TYPES",
    "ProxyPipeline",
    "ProxyResponse",
    "annotate_html",
    "is_html",
    "process_origin_response",
]

logger = logging.getLogger(__name__)

HTML_MEDIA_TYPES = frozenset({"text/html", "application/xhtml+xml"})


@dataclass(slots=True)
class ProxyResponse:
    status: int
    headers: list[tuple[str, str]] = field(default_factory=list)
    body: bytes = b""
    annotated: bool = False


def is_html(content_type: str | None) -> bool:
    if not content_type:
        return False
    media_type = content_type.split(";", 1)[0].strip().lower()
    return media_type in HTML_MEDIA_TYPES


def _should_annotate(response: OriginResponse) -> bool:
    return response.status == 200 and is_html(response.content_type)


def _passthrough(response: OriginResponse) -> ProxyResponse:
    headers = [
        (name, value)
        for name, value in response.headers
        if name.lower() not in HOP_BY_HOP_HEADERS
    ]
    return ProxyResponse(status=response.status, headers=headers, body=response.body)


def annotate_html(
    text: str,
    converter: ReadingConverter,
    *,
    strip_spaces: bool = True,
) -> str:
    """Wrap every kanji/hiragana run of ``text`` in ruby markup."""
    segments = segment_document(text)
    needed = readings_needed(segments)
    logger.debug("segmented document into %d runs, %d need readings", len(segments), len(needed))
    readings = resolve_readings(needed, converter, strip_spaces=strip_spaces) if needed else []
    return reassemble(segments, readings)


def process_origin_response(
    response: OriginResponse,
    converter: ReadingConverter,
    *,
    strip_spaces: bool = True,
) -> ProxyResponse:
    """
    Annotate a successful HTML origin response; pass anything else through untouched.
    """
    if not _should_annotate(response):
        logger.debug("passing through status=%s content-type=%s", response.status, response.content_type)
        return _passthrough(response)
    try:
        text = response.decoded_body().decode("utf-8")
    except UnicodeDecodeError as exc:
        raise DecodeError("Origin HTML body is not valid UTF-8") from exc
    annotated = annotate_html(text, converter, strip_spaces=strip_spaces)
    return ProxyResponse(
        status=response.status,
        headers=[("content-type", response.content_type or "text/html")],
        body=annotated.encode("utf-8"),
        annotated=True,
    )


class ProxyPipeline:
    """
    Request-scoped driver: filter the method, fetch from the origin (following
    one same-host permanent redirect), then annotate or pass through.
    """

    def __init__(
        self,
        config: ProxyConfig,
        *,
        origin: OriginClient | None = None,
        converter: ReadingConverter | None = None,
    ) -> None:
        self.config = config
        self.origin = origin or OriginClient(config.origin_host, timeout=config.timeout)
        self.converter = converter or HiraganaClient(config.reading)

    def origin_url_for(self, path: str, query: str = "") -> str:
        if not path.startswith("/"):
            path = f"/{path}"
        url = f"{self.config.origin_url}{path}"
        return f"{url}?{query}" if query else url

    def handle(
        self,
        method: str,
        path: str,
        *,
        query: str = "",
        headers: Mapping[str, str] | Iterable[tuple[str, str]] = (),
        body: bytes | None = None,
    ) -> ProxyResponse:
        method = method.upper()
        if method not in self.config.allowed_methods:
            raise UnsupportedMethod(method)
        url = self.origin_url_for(path, query)
        logger.info("url: %s", url)
        forwarded = rewrite_request_headers(headers, self.config.origin_host)
        response = self.origin.fetch_following_redirect(
            method,
            url,
            forwarded,
            body if method == "POST" else None,
            follow=self.config.follow_redirect,
        )
        if method == "HEAD":
            return _passthrough(response)
        result = process_origin_response(
            response,
            self.converter,
            strip_spaces=self.config.reading.strip_spaces,
        )
        if result.annotated:
            logger.info("annotated %s (%d bytes)", url, len(result.body))
        return result

    def close(self) -> None:
        close = getattr(self.converter, "close", None)
        if callable(close):
            close()
