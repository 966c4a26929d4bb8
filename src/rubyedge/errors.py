from __future__ import annotations

__all__ = [
    "AlignmentMismatch",
    "DecodeError",
    "RubyEdgeError",
    "TransportError",
    "UnsupportedMethod",
]


class RubyEdgeError(RuntimeError):
    """Base class for failures that terminate a proxied request."""


class TransportError(RubyEdgeError):
    """Raised when the origin or the reading service is unreachable or answers with an error status."""


class DecodeError(RubyEdgeError):
    """Raised when a body is not valid text or the reading service response is malformed."""


class AlignmentMismatch(RubyEdgeError):
    """Raised when the number of readings differs from the number of annotated runs."""

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(
            f"Reading count mismatch: expected {expected} readings, got {actual}"
        )
        self.expected = expected
        self.actual = actual


class UnsupportedMethod(RubyEdgeError):
    """Raised when an inbound request uses a method the proxy does not forward."""

    def __init__(self, method: str) -> None:
        super().__init__(f"Method {method} is not allowed")
        self.method = method
