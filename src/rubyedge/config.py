from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Mapping
from urllib.parse import urlparse

import tomllib

__all__ = [
    "ConfigError",
    "DEFAULT_API_URL",
    "DEFAULT_METHODS",
    "OUTPUT_TYPES",
    "ProxyConfig",
    "ReadingConfig",
    "load_config",
    "load_reading_config",
]

DEFAULT_API_URL = "https://labs.goo.ne.jp/api/hiragana"
DEFAULT_METHODS = ("GET", "HEAD", "POST")
OUTPUT_TYPES = ("hiragana", "katakana")

ENV_ORIGIN_URL = "RUBYEDGE_ORIGIN_URL"
ENV_APP_ID = "RUBYEDGE_APP_ID"
ENV_OUTPUT_TYPE = "RUBYEDGE_OUTPUT_TYPE"
ENV_API_URL = "RUBYEDGE_API_URL"


class ConfigError(ValueError):
    """Raised when the proxy configuration is missing or invalid."""


@dataclass(frozen=True, slots=True)
class ReadingConfig:
    app_id: str
    output_type: str = "hiragana"
    api_url: str = DEFAULT_API_URL
    timeout: float = 30.0
    strip_spaces: bool = True

    def __post_init__(self) -> None:
        if not self.app_id:
            raise ConfigError("Reading service app_id is required.")
        if self.output_type not in OUTPUT_TYPES:
            raise ConfigError(
                f"output_type must be one of {', '.join(OUTPUT_TYPES)}; got {self.output_type!r}"
            )


@dataclass(frozen=True, slots=True)
class ProxyConfig:
    origin_url: str
    reading: ReadingConfig
    timeout: float = 30.0
    follow_redirect: bool = True
    allowed_methods: tuple[str, ...] = field(default=DEFAULT_METHODS)

    def __post_init__(self) -> None:
        parsed = urlparse(self.origin_url)
        if parsed.scheme not in {"http", "https"} or not parsed.hostname:
            raise ConfigError(f"Invalid origin URL: {self.origin_url!r}")
        object.__setattr__(self, "origin_url", self.origin_url.rstrip("/"))
        object.__setattr__(
            self, "allowed_methods", tuple(method.upper() for method in self.allowed_methods)
        )

    @property
    def origin_host(self) -> str:
        return urlparse(self.origin_url).netloc


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        with path.open("rb") as fh:
            return tomllib.load(fh)
    except FileNotFoundError as exc:
        raise ConfigError(f"Config file not found: {path}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid TOML in {path}: {exc}") from exc


def _section(data: Mapping[str, Any], name: str) -> dict[str, Any]:
    value = data.get(name, {})
    if not isinstance(value, dict):
        raise ConfigError(f"[{name}] must be a table.")
    return value


def _load_sources(
    path: Path | str | None,
    env: Mapping[str, str] | None,
) -> tuple[dict[str, Any], dict[str, Any], Mapping[str, str]]:
    if env is None:
        env = os.environ
    data = _read_toml(Path(path).expanduser()) if path is not None else {}
    return _section(data, "origin"), _section(data, "reading"), env


def _build_reading(
    reading: Mapping[str, Any],
    env: Mapping[str, str],
    overrides: dict[str, Any],
) -> ReadingConfig:
    app_id = overrides.pop("app_id", None) or env.get(ENV_APP_ID) or reading.get("app_id")
    output_type = (
        overrides.pop("output_type", None)
        or env.get(ENV_OUTPUT_TYPE)
        or reading.get("output_type", "hiragana")
    )
    api_url = env.get(ENV_API_URL) or reading.get("api_url", DEFAULT_API_URL)
    if not app_id:
        raise ConfigError(f"Reading service app_id is required (set [reading] app_id or {ENV_APP_ID}).")
    try:
        return ReadingConfig(
            app_id=str(app_id),
            output_type=str(output_type),
            api_url=str(api_url),
            timeout=float(reading.get("timeout", 30.0)),
            strip_spaces=bool(reading.get("strip_spaces", True)),
        )
    except ConfigError:
        raise
    except (TypeError, ValueError) as exc:
        raise ConfigError(str(exc)) from exc


def load_reading_config(
    path: Path | str | None = None,
    *,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> ReadingConfig:
    """Load only the ``[reading]`` settings; used when no origin is involved."""
    _, reading, env = _load_sources(path, env)
    return _build_reading(reading, env, dict(overrides or {}))


def load_config(
    path: Path | str | None = None,
    *,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> ProxyConfig:
    """
    Build the proxy configuration from an optional TOML file, then the
    environment, then explicit overrides (CLI flags). Later sources win.

    The TOML file may contain::

        [origin]
        url = "https://www.fastly.jp"
        timeout = 30
        follow_redirect = true
        methods = ["GET", "HEAD", "POST"]

        [reading]
        app_id = "..."
        output_type = "hiragana"
        api_url = "https://labs.goo.ne.jp/api/hiragana"
        timeout = 30
        strip_spaces = true
    """
    origin, reading, env = _load_sources(path, env)
    remaining = dict(overrides or {})
    origin_url = remaining.pop("origin_url", None) or env.get(ENV_ORIGIN_URL) or origin.get("url")
    if not origin_url:
        raise ConfigError(f"Origin URL is required (set [origin] url or {ENV_ORIGIN_URL}).")
    reading_config = _build_reading(reading, env, remaining)

    try:
        config = ProxyConfig(
            origin_url=str(origin_url),
            reading=reading_config,
            timeout=float(origin.get("timeout", 30.0)),
            follow_redirect=bool(origin.get("follow_redirect", True)),
            allowed_methods=tuple(origin.get("methods", DEFAULT_METHODS)),
        )
        if remaining:
            config = replace(config, **remaining)
    except ConfigError:
        raise
    except (TypeError, ValueError) as exc:
        raise ConfigError(str(exc)) from exc
    return config
