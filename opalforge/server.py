import json
from typing import Any

from fastapi import Depends, FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from redis import RedisError
from starlette.concurrency import run_in_threadpool

from opalforge.certificates.cache import LAST_REQUESTER_KEY, CertificateCache, get_cache
from opalforge.certificates.database import create_tables
from opalforge.certificates.router import router as certificate_router
from opalforge.certificates.schemas import EchoResponse, HealthResponse, utc_now_iso
from opalforge.config import settings
from opalforge.exceptions import DependencyError, OpalForgeError, ValidationError
from opalforge.logging import get_logger, request_id_middleware

logger = get_logger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, HEAD, POST, OPTIONS",
    "Access-Control-Allow-Headers": "*",
}


def error_response(status_code: int, kind: str, message: str, **extra: Any) -> JSONResponse:
    """Every error leaves the service in the same JSON envelope."""
    content = {"status": "error", "error": kind, "message": message}
    content.update({key: value for key, value in extra.items() if value is not None})
    return JSONResponse(status_code=status_code, content=content, headers=CORS_HEADERS)


async def opalforge_error_handler(request: Request, exc: OpalForgeError) -> JSONResponse:
    extra = {}
    if isinstance(exc, DependencyError):
        logger.error(f"{request.method} {request.url.path} failed on a dependency: {exc.message}", exc_info=exc)
        extra = {"upstream_status": exc.upstream_status, "upstream_body": exc.upstream_body}
    else:
        logger.info(f"{request.method} {request.url.path} rejected with {int(exc.status_code)}: {exc.message}")
    return error_response(exc.status_code, exc.kind, exc.message, **extra)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ())[1:])
        problems.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    message = "Invalid request. " + "; ".join(problems)
    logger.info(f"{request.method} {request.url.path} rejected with 400: {message}")
    return error_response(400, ValidationError.kind, message)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"{request.method} {request.url.path} generated exception {exc}")
    # don't leak any internal information about a 500
    return error_response(500, "InternalError", "An unexpected error occurred.")


def create_app() -> FastAPI:
    """
    Creates and configures the FastAPI application instance.

    This includes creating the certificate tables, adding request ID and CORS
    middleware, registering the error envelope handlers and including the
    certificate routes alongside the health and echo endpoints.

    Returns:
        FastAPI: The configured FastAPI application instance.
    """
    create_tables()

    app = FastAPI(
        title=settings.app_name,
        debug=settings.debug,
    )

    @app.middleware("http")
    async def add_request_id_and_cors(request: Request, call_next):
        """Tags each request with a unique ID and adds allow-all CORS headers to every response."""
        request_id: str = request_id_middleware(request)
        if request.method == "OPTIONS":
            # CORS preflight is answered for any path
            response = Response(status_code=200)
        else:
            response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        for header, value in CORS_HEADERS.items():
            response.headers[header] = value
        return response

    app.add_exception_handler(OpalForgeError, opalforge_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(certificate_router)

    @app.api_route("/health", methods=["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE"], response_model=HealthResponse, tags=["Health Check"])
    @app.get("/", response_model=HealthResponse, tags=["Health Check"])
    async def health_check():
        logger.info("Health check endpoint was called.")
        return HealthResponse(status="ok", service=settings.app_name, timestamp=utc_now_iso())

    @app.post("/", response_model=EchoResponse, tags=["Echo"])
    async def echo(request: Request, cache: CertificateCache = Depends(get_cache)):
        """Accepts any JSON body, remembers who sent it last and echoes it back."""
        try:
            body = json.loads(await request.body())
        except ValueError:
            raise ValidationError("Request body must be valid JSON.")

        last_requester = {
            "client": request.client.host if request.client else "unknown",
            "receivedAt": utc_now_iso(),
            "body": body,
        }
        try:
            await run_in_threadpool(cache.set_json, LAST_REQUESTER_KEY, last_requester, settings.certificate_cache_ttl)
        except RedisError as e:
            logger.warning(f"Could not record last requester: {e}")

        return EchoResponse(status="ok", received=body)

    return app

app = create_app()
