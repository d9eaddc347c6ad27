"""FastAPI application serving the WorldCat pool."""

from __future__ import annotations

from contextlib import asynccontextmanager
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import Any, Protocol, Sequence

from fastapi import Depends, FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from WorldcatPool.api.auth import bearer_auth
from WorldcatPool.api.schemas import SearchBody
from WorldcatPool.config import AppConfig
from WorldcatPool.core.errors import PoolError, UpstreamFormatError
from WorldcatPool.core.models import Pagination, PoolResult, RecordField, SearchRequest
from WorldcatPool.sources.worldcat.source import DEFAULT_SORT
from WorldcatPool.utils.log import log

DEFAULT_LANGUAGE = "en-US"

POOL_NAME = "WorldCat"
POOL_DESCRIPTION = (
    "WorldCat is the world's most comprehensive database of information about library collections. "
    "Results do not include items that are found elsewhere in UVA's central collection. "
    "<a href='https://www.worldcat.org/'>Learn more about WorldCat.</a>"
)
ITEM_MESSAGE = (
    "This resource is not held by the UVA Library. You may request an Interlibrary Loan "
    "using the 'Request Interlibrary Loan' button below."
)


class PoolSource(Protocol):
    """Search backend used by the HTTP layer."""

    def search(self, request: SearchRequest) -> PoolResult:
        raise NotImplementedError

    def get_resource(self, oclc_number: str) -> Sequence[RecordField]:
        raise NotImplementedError

    def close(self) -> None:
        raise NotImplementedError


def service_version() -> str:
    try:
        return version("worldcat-pool")
    except PackageNotFoundError:
        return "unknown"


def build_tag(root: Path = Path(".")) -> str:
    """Return the suffix of the single ``buildtag.*`` file in ``root``."""
    tags = sorted(root.glob("buildtag.*"))
    if len(tags) != 1:
        return "unknown"
    return tags[0].name.removeprefix("buildtag.")


def content_language(accept_language: str) -> str:
    """Return the first ``Accept-Language`` entry, defaulting to en-US."""
    first = accept_language.split(",")[0].strip()
    return first or DEFAULT_LANGUAGE


def identity(config: AppConfig) -> dict[str, Any]:
    """Describe this pool to the aggregator."""
    upstream = next((p for p in config.providers.providers if not p.match), None)
    attributes: list[dict[str, Any]] = []
    if upstream is not None:
        if upstream.logo_url:
            attributes.append({"name": "logo_url", "supported": True, "value": upstream.logo_url})
        if upstream.homepage_url:
            attributes.append({"name": "external_url", "supported": True, "value": upstream.homepage_url})
    attributes.extend([
        {"name": "facets", "supported": False},
        {"name": "sorting", "supported": True},
        {"name": "ill_request", "supported": True},
        {"name": "item_message", "supported": True, "value": ITEM_MESSAGE},
    ])
    return {
        "name": POOL_NAME,
        "description": POOL_DESCRIPTION,
        "mode": "record",
        "attributes": attributes,
        "sort_options": [
            {"id": "SortRelevance", "label": "Relevance"},
            {"id": "SortDatePublished", "label": "Date Published", "asc": "oldest first", "desc": "newest first"},
        ],
    }


def create_app(config: AppConfig, source: PoolSource | None = None) -> FastAPI:
    """Create the pool application.

    Args:
        config: Application configuration.
        source: Search backend. Built from ``config`` when omitted.

    Returns:
        Configured FastAPI application.
    """
    if source is None:
        from WorldcatPool.sources.factory import create_worldcat_source

        source = create_worldcat_source(config)
    pool = source

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        log.info("Start service v%s on %s:%d", service_version(), config.server.host, config.server.port)
        yield
        log.info("Shutting down WorldCat pool")
        pool.close()

    app = FastAPI(title="WorldCat Pool", version=service_version(), lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["Authorization", "Content-Type", "Accept-Language"],
    )
    app.add_middleware(GZipMiddleware)

    @app.middleware("http")
    async def set_content_language(request: Request, call_next):
        response = await call_next(request)
        response.headers["Content-Language"] = content_language(request.headers.get("Accept-Language", ""))
        return response

    @app.exception_handler(PoolError)
    async def pool_error_handler(request: Request, exc: PoolError) -> PlainTextResponse:
        log.error("%s %s failed with %d: %s", request.method, request.url.path, exc.status_code, exc.message)
        return PlainTextResponse(exc.message, status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def invalid_request_handler(request: Request, exc: RequestValidationError) -> PlainTextResponse:
        log.error("Unable to parse request to %s: %s", request.url.path, exc.errors())
        return PlainTextResponse("invalid request", status_code=400)

    if not config.server.jwt_key:
        log.warning("%s is not set; requests carrying a bearer token will be rejected", config.server.jwt_key_env)
    require_bearer = Depends(bearer_auth(config.server.jwt_key))

    @app.get("/")
    @app.get("/version")
    def get_version() -> dict[str, str]:
        return {"version": service_version(), "build": build_tag()}

    @app.get("/favicon.ico", include_in_schema=False)
    def ignore_favicon() -> Response:
        return Response(status_code=204)

    @app.get("/healthcheck")
    def health_check() -> dict[str, Any]:
        return {"worldcat": {"healthy": True}}

    @app.get("/identify")
    def identify() -> dict[str, Any]:
        return identity(config)

    @app.get("/api/providers", dependencies=[require_bearer])
    def providers() -> dict[str, Any]:
        return {"providers": [p.to_dict() for p in config.providers.providers]}

    @app.post("/api/search", dependencies=[require_bearer])
    def search(body: SearchBody) -> JSONResponse:
        log.info("Search requested")
        request = body.to_request()
        try:
            result = pool.search(request)
        except UpstreamFormatError as error:
            log.error("Invalid response from WorldCat API: %s", error.message)
            result = PoolResult(
                pagination=Pagination(start=request.pagination.start),
                sort=request.sort if request.sort.sort_id else DEFAULT_SORT,
                status_code=error.status_code,
                status_msg=error.message,
            )
        return JSONResponse(result.to_dict(), status_code=result.status_code)

    @app.post("/api/search/facets", dependencies=[require_bearer])
    def facets() -> dict[str, Any]:
        log.info("Facets requested, but WorldCat does not support this")
        return {"facets": []}

    @app.get("/api/resource/{oclc_number}", dependencies=[require_bearer])
    def get_resource(oclc_number: str) -> dict[str, Any]:
        fields = pool.get_resource(oclc_number)
        return {"fields": [f.to_dict() for f in fields]}

    return app
