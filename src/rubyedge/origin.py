from __future__ import annotations

import gzip
import logging
import re
import zlib
from dataclasses import dataclass, field
from typing import Iterable, Mapping

import requests
from urllib3.exceptions import HTTPError as Urllib3HTTPError

from .errors import DecodeError, TransportError

__all__ = [
    "HOP_BY_HOP_HEADERS",
    "OriginClient",
    "OriginResponse",
    "redirect_target",
    "rewrite_request_headers",
]

logger = logging.getLogger(__name__)

HOP_BY_HOP_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailer",
        "trailers",
        "transfer-encoding",
        "upgrade",
    }
)
_DROPPED_REQUEST_HEADERS = HOP_BY_HOP_HEADERS | {"host", "accept-encoding", "content-length"}

_REDIRECT_PATH = r"(/[A-Za-z0-9@:%._\+~#=/]*)$"


@dataclass(slots=True)
class OriginResponse:
    """
    An origin answer exactly as received: repeated header lines stay separate
    and ``body`` is still in its content coding.
    """

    status: int
    headers: list[tuple[str, str]] = field(default_factory=list)
    body: bytes = b""

    def header(self, name: str) -> str | None:
        name = name.lower()
        for key, value in self.headers:
            if key.lower() == name:
                return value
        return None

    @property
    def content_type(self) -> str | None:
        return self.header("content-type")

    def decoded_body(self) -> bytes:
        """Undo the content coding; only gzip and deflate are understood."""
        coding = (self.header("content-encoding") or "identity").strip().lower()
        try:
            if coding in {"identity", ""}:
                return self.body
            if coding in {"gzip", "x-gzip"}:
                return gzip.decompress(self.body)
            if coding == "deflate":
                try:
                    return zlib.decompress(self.body)
                except zlib.error:
                    return zlib.decompress(self.body, -zlib.MAX_WBITS)
        except (OSError, EOFError, zlib.error) as exc:
            raise DecodeError(f"Origin body is not valid {coding} data") from exc
        raise DecodeError(f"Unsupported origin content coding: {coding}")


def rewrite_request_headers(headers: Iterable[tuple[str, str]] | Mapping[str, str], origin_host: str) -> dict[str, str]:
    """
    Prepare inbound headers for the origin: pin ``Host`` to the origin and ask
    for an uncompressed body.
    """
    items = headers.items() if isinstance(headers, Mapping) else headers
    rewritten: dict[str, str] = {}
    for name, value in items:
        if name.lower() in _DROPPED_REQUEST_HEADERS:
            continue
        rewritten[name] = value
    rewritten["Host"] = origin_host
    rewritten["Accept-Encoding"] = "identity"
    return rewritten


def redirect_target(response: OriginResponse, origin_host: str) -> str | None:
    """Return the Location of a permanent redirect that stays on ``origin_host``."""
    if response.status != 301:
        return None
    location = response.header("location")
    if not location:
        return None
    pattern = re.compile(rf"https?://{re.escape(origin_host)}{_REDIRECT_PATH}")
    if pattern.match(location) is None:
        return None
    return location


def _raw_headers(resp: requests.Response) -> list[tuple[str, str]]:
    raw_headers = resp.raw.headers
    return [(name, value) for name in raw_headers for value in raw_headers.getlist(name)]


class OriginClient:
    """
    Fetches pages from the origin without caching or automatic redirects.

    Each call opens its own ``requests.Session`` so cookies set for one client
    are never replayed for another.
    """

    def __init__(self, origin_host: str, timeout: float = 30.0) -> None:
        self.origin_host = origin_host
        self.timeout = timeout

    def _fetch(
        self,
        session: requests.Session,
        method: str,
        url: str,
        headers: Mapping[str, str] | None,
        body: bytes | None,
    ) -> OriginResponse:
        try:
            with session.request(
                method,
                url,
                headers=dict(headers or {}),
                data=body or None,
                timeout=self.timeout,
                allow_redirects=False,
                stream=True,
            ) as resp:
                return OriginResponse(
                    status=resp.status_code,
                    headers=_raw_headers(resp),
                    body=resp.raw.read(decode_content=False),
                )
        except (requests.RequestException, Urllib3HTTPError) as exc:
            raise TransportError(f"Failed to contact origin at {url}") from exc

    def fetch(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str] | None = None,
        body: bytes | None = None,
    ) -> OriginResponse:
        with requests.Session() as session:
            return self._fetch(session, method, url, headers, body)

    def fetch_following_redirect(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str] | None = None,
        body: bytes | None = None,
        *,
        follow: bool = True,
    ) -> OriginResponse:
        """Fetch ``url`` and follow at most one same-host permanent redirect with GET."""
        with requests.Session() as session:
            response = self._fetch(session, method, url, headers, body)
            if not follow:
                return response
            location = redirect_target(response, self.origin_host)
            if location is None:
                return response
            logger.info("following redirect to %s", location)
            redirect_headers = {"Host": self.origin_host, "Accept-Encoding": "identity"}
            return self._fetch(session, "GET", location, redirect_headers, None)
