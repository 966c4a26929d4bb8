from __future__ import annotations

import argparse
import sys
from importlib import metadata
from pathlib import Path

import tomllib
import uvicorn
from rich.console import Console
from rich.markup import escape

from .config import OUTPUT_TYPES, ConfigError, ProxyConfig, load_config, load_reading_config
from .errors import RubyEdgeError
from .hiragana import HiraganaClient
from .logging_utils import build_uvicorn_log_config, configure_cli_logging
from .pipeline import annotate_html
from .web import create_app


def _read_local_version() -> str | None:
    try:
        pyproject_path = Path(__file__).resolve().parents[2] / "pyproject.toml"
    except IndexError:  # pragma: no cover - defensive
        return None
    try:
        with pyproject_path.open("rb") as fh:
            data = tomllib.load(fh)
    except (FileNotFoundError, tomllib.TOMLDecodeError):
        return None
    return data.get("project", {}).get("version")


try:
    __version__ = metadata.version("rubyedge")
except metadata.PackageNotFoundError:
    __version__ = _read_local_version() or "0.0.0+unknown"


def _add_version_flag(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"rubyedge {__version__}",
    )


def _add_config_flags(parser: argparse.ArgumentParser, *, origin: bool = True) -> None:
    parser.add_argument(
        "-c",
        "--config",
        help="Path to a TOML config file with [origin] and [reading] tables.",
    )
    if origin:
        parser.add_argument(
            "--origin",
            help="Origin base URL, e.g. https://www.fastly.jp (overrides config).",
        )
    parser.add_argument(
        "--app-id",
        help="Application id for the reading service (overrides config).",
    )
    parser.add_argument(
        "--output-type",
        choices=OUTPUT_TYPES,
        help="Reading script returned by the service (default: hiragana).",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable verbose debug logging (segments, batch sizes, service request ids).",
    )


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        description="Ruby-annotating HTML proxy. Use `rubyedge serve` to start the proxy.",
    )
    _add_version_flag(ap)
    return ap


def build_serve_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        description="Proxy an origin site and add furigana to its HTML pages.",
    )
    _add_version_flag(ap)
    _add_config_flags(ap)
    ap.add_argument(
        "--host",
        default="0.0.0.0",
        help="Host interface for the proxy (default: 0.0.0.0).",
    )
    ap.add_argument(
        "--port",
        type=int,
        default=7878,
        help="Port for the proxy (default: 7878).",
    )
    ap.add_argument(
        "--no-follow-redirect",
        action="store_true",
        help="Return same-host 301 responses instead of following them once.",
    )
    return ap


def build_annotate_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        description="Add furigana to a local UTF-8 HTML file.",
    )
    _add_version_flag(ap)
    ap.add_argument("input_path", help="Path to the .html file to annotate")
    ap.add_argument(
        "-o",
        "--output",
        help="Output path (default: <input>.ruby.html next to the input).",
    )
    _add_config_flags(ap, origin=False)
    return ap


def build_check_config_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        description="Validate the proxy configuration and print the resolved values.",
    )
    _add_config_flags(ap)
    return ap


def _overrides(args: argparse.Namespace) -> dict[str, object]:
    overrides: dict[str, object] = {}
    if getattr(args, "origin", None):
        overrides["origin_url"] = args.origin
    if args.app_id:
        overrides["app_id"] = args.app_id
    if args.output_type:
        overrides["output_type"] = args.output_type
    if getattr(args, "no_follow_redirect", False):
        overrides["follow_redirect"] = False
    return overrides


def _mask(secret: str) -> str:
    if len(secret) <= 8:
        return "*" * len(secret)
    return f"{secret[:4]}…{secret[-4:]}"


def _describe_config(console: Console, config: ProxyConfig) -> None:
    console.print(f"[bold]origin[/bold]          {config.origin_url}")
    console.print(f"[bold]methods[/bold]         {', '.join(config.allowed_methods)}")
    console.print(f"[bold]follow redirect[/bold] {'yes' if config.follow_redirect else 'no'}")
    console.print(f"[bold]reading api[/bold]     {config.reading.api_url}")
    console.print(f"[bold]app id[/bold]          {_mask(config.reading.app_id)}")
    console.print(f"[bold]output type[/bold]     {config.reading.output_type}")


def _run_serve(args: argparse.Namespace) -> int:
    config = load_config(args.config, overrides=_overrides(args))
    app = create_app(config)
    console = Console()
    console.print(f"Proxying {config.origin_url}")
    console.print(f"Proxy URL: http://{args.host}:{args.port}/")
    console.print("Press Ctrl+C to stop.\n")
    try:
        uvicorn.run(
            app,
            host=args.host,
            port=args.port,
            log_config=build_uvicorn_log_config(debug=args.debug),
        )
    finally:
        app.state.pipeline.close()
    return 0


def _run_annotate(args: argparse.Namespace) -> int:
    configure_cli_logging(args.debug)
    inp_path = Path(args.input_path).expanduser()
    if not inp_path.exists():
        raise FileNotFoundError(f"Input file not found: {inp_path}")
    output_path = Path(args.output) if args.output else inp_path.with_suffix(".ruby.html")

    reading = load_reading_config(args.config, overrides=_overrides(args))
    text = inp_path.read_text(encoding="utf-8")
    with HiraganaClient(reading) as client:
        annotated = annotate_html(text, client, strip_spaces=reading.strip_spaces)
    output_path.write_text(annotated, encoding="utf-8")
    Console(stderr=True).print(f"Wrote {output_path}")
    return 0


def _run_check_config(args: argparse.Namespace) -> int:
    config = load_config(args.config, overrides=_overrides(args))
    _describe_config(Console(), config)
    return 0


def main(argv: list[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]

    err = Console(stderr=True)
    try:
        if argv and argv[0] == "serve":
            return _run_serve(build_serve_parser().parse_args(argv[1:]))
        if argv and argv[0] == "annotate":
            return _run_annotate(build_annotate_parser().parse_args(argv[1:]))
        if argv and argv[0] == "check-config":
            return _run_check_config(build_check_config_parser().parse_args(argv[1:]))
    except ConfigError as exc:
        err.print(f"[red]Configuration error:[/red] {escape(str(exc))}")
        return 2
    except RubyEdgeError as exc:
        err.print(f"[red]Error:[/red] {escape(str(exc))}")
        return 1

    parser = build_parser()
    if not argv:
        parser.print_help()
        return 0
    parser.error(f"unknown command: {argv[0]} (expected serve, annotate or check-config)")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
