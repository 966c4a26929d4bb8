from __future__ import annotations

import asyncio
import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import PlainTextResponse, Response

from .config import ProxyConfig
from .errors import AlignmentMismatch, DecodeError, TransportError, UnsupportedMethod
from .pipeline import ProxyPipeline, ProxyResponse

__all__ = ["METHOD_NOT_ALLOWED_BODY", "create_app"]

logger = logging.getLogger(__name__)

METHOD_NOT_ALLOWED_BODY = "This method is not allowed"


def _method_not_allowed() -> PlainTextResponse:
    return PlainTextResponse(METHOD_NOT_ALLOWED_BODY, status_code=405)


def _to_response(result: ProxyResponse) -> Response:
    response = Response(content=result.body, status_code=result.status)
    # Origin header lines are replayed one by one; a forwarded length replaces ours.
    if any(name.lower() == "content-length" for name, _ in result.headers):
        del response.headers["content-length"]
    for name, value in result.headers:
        response.headers.append(name, value)
    return response


def create_app(config: ProxyConfig, *, pipeline: ProxyPipeline | None = None) -> FastAPI:
    app = FastAPI(title="rubyedge", docs_url=None, redoc_url=None, openapi_url=None)
    app.state.config = config
    app.state.pipeline = pipeline or ProxyPipeline(config)

    @app.middleware("http")
    async def reject_unsupported_methods(request: Request, call_next):
        # Runs before routing, so TRACE, PURGE and friends get the same body.
        if request.method.upper() not in config.allowed_methods:
            return _method_not_allowed()
        return await call_next(request)

    @app.api_route("/{path:path}", methods=list(config.allowed_methods))
    async def proxy(path: str, request: Request) -> Response:
        method = request.method.upper()
        body = await request.body() if method == "POST" else None
        headers = list(request.headers.items())
        query = request.url.query
        loop = asyncio.get_running_loop()

        def work() -> ProxyResponse:
            return app.state.pipeline.handle(
                method,
                f"/{path}",
                query=query,
                headers=headers,
                body=body,
            )

        try:
            result = await loop.run_in_executor(None, work)
        except UnsupportedMethod:
            return _method_not_allowed()
        except (TransportError, DecodeError, AlignmentMismatch) as exc:
            logger.warning("request for /%s failed: %s", path, exc)
            raise HTTPException(status_code=502, detail=str(exc)) from exc

        return _to_response(result)

    return app
