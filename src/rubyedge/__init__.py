from .charclass import CharClass, classify
from .config import ConfigError, ProxyConfig, ReadingConfig, load_config
from .errors import (
    AlignmentMismatch,
    DecodeError,
    RubyEdgeError,
    TransportError,
    UnsupportedMethod,
)
from .hiragana import HiraganaClient, resolve_readings
from .pipeline import ProxyPipeline, annotate_html, process_origin_response
from .ruby import reassemble
from .segmenter import Segment, readings_needed, segment_document

__all__ = [
    "CharClass",
    "classify",
    "Segment",
    "segment_document",
    "readings_needed",
    "HiraganaClient",
    "resolve_readings",
    "reassemble",
    "annotate_html",
    "process_origin_response",
    "ProxyPipeline",
    "ProxyConfig",
    "ReadingConfig",
    "load_config",
    "ConfigError",
    "RubyEdgeError",
    "TransportError",
    "DecodeError",
    "AlignmentMismatch",
    "UnsupportedMethod",
]
