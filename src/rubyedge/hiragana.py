from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping, Protocol, Sequence

import requests

from .config import ReadingConfig
from .errors import AlignmentMismatch, DecodeError, TransportError

__all__ = [
    "BATCH_DELIMITER",
    "HiraganaClient",
    "HiraganaResponse",
    "ReadingConverter",
    "resolve_readings",
]

BATCH_DELIMITER = ","

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class HiraganaResponse:
    converted: str
    output_type: str
    request_id: str

    @classmethod
    def from_payload(cls, payload: object) -> "HiraganaResponse":
        if not isinstance(payload, Mapping):
            raise DecodeError("Reading service returned a non-object JSON payload")
        values: dict[str, str] = {}
        for key in ("converted", "output_type", "request_id"):
            value = payload.get(key)
            if not isinstance(value, str):
                raise DecodeError(f"Reading service response is missing string field {key!r}")
            values[key] = value
        return cls(**values)


class ReadingConverter(Protocol):
    def convert(self, sentence: str) -> HiraganaResponse: ...


class HiraganaClient:
    """
    Thin wrapper around the goo labs hiragana conversion API.
    """

    def __init__(self, config: ReadingConfig) -> None:
        self.config = config
        self._session = requests.Session()

    def convert(self, sentence: str) -> HiraganaResponse:
        payload = {
            "app_id": self.config.app_id,
            "sentence": sentence,
            "output_type": self.config.output_type,
        }
        try:
            resp = self._session.post(
                self.config.api_url,
                json=payload,
                timeout=self.config.timeout,
            )
        except requests.RequestException as exc:
            raise TransportError(
                f"Failed to contact reading service at {self.config.api_url}"
            ) from exc

        if resp.status_code != 200:
            raise TransportError(
                f"Reading service failed with status {resp.status_code}: {resp.text}"
            )

        try:
            body = resp.json()
        except ValueError as exc:
            raise DecodeError("Reading service returned invalid JSON") from exc
        result = HiraganaResponse.from_payload(body)
        logger.debug("reading service request_id=%s", result.request_id)
        return result

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> "HiraganaClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def _normalize_reading(token: str, strip_spaces: bool) -> str:
    if strip_spaces:
        # The service separates morphemes with half- and full-width spaces.
        return "".join(token.split())
    return token.strip()


def resolve_readings(
    texts: Sequence[str],
    converter: ReadingConverter,
    *,
    strip_spaces: bool = True,
) -> list[str]:
    """
    Fetch readings for ``texts`` with a single service call.

    Returns one reading per input, in order. The service answer is split on the
    same delimiter the request was joined with and its token count is checked;
    any difference raises ``AlignmentMismatch``. No call is made for an empty
    input.
    """
    if not texts:
        return []
    for text in texts:
        if BATCH_DELIMITER in text:
            raise ValueError(f"Run contains the batch delimiter: {text!r}")
    sentence = BATCH_DELIMITER.join(texts)
    logger.debug("requesting readings for %d runs (%d chars)", len(texts), len(sentence))
    response = converter.convert(sentence)
    tokens = response.converted.split(BATCH_DELIMITER)
    if len(tokens) != len(texts):
        raise AlignmentMismatch(len(texts), len(tokens))
    return [_normalize_reading(token, strip_spaces) for token in tokens]
