"""FastAPI application for the Aegis scan gateway."""

import json
import logging

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import config
from .errors import ScanGatewayError
from .gateway import ScanGateway
from .rate_limit import RateLimiter, client_identity

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Aegis Scan Gateway",
    description="Proxies security scan requests to an AI provider and returns normalized findings",
    version="0.1.0",
)

rate_limiter = RateLimiter()
gateway = ScanGateway(rate_limiter=rate_limiter)

ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]
METHOD_NOT_ALLOWED = "Method not allowed"


@app.middleware("http")
async def cors_headers(request: Request, call_next):
    """Attach the same CORS headers to every response, errors included."""
    response = await call_next(request)
    response.headers["Access-Control-Allow-Origin"] = config.allowed_origin()
    response.headers["Access-Control-Allow-Methods"] = "POST, OPTIONS"
    response.headers["Access-Control-Allow-Headers"] = "Content-Type"
    return response


@app.exception_handler(StarletteHTTPException)
async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render routing errors (unknown path, unlisted method) in the {"error": ...} shape."""
    message = METHOD_NOT_ALLOWED if exc.status_code == 405 else str(exc.detail)
    return JSONResponse(
        {"error": message},
        status_code=exc.status_code,
        headers=getattr(exc, "headers", None),
    )


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "ok"}


@app.api_route("/api/scan", methods=ALL_METHODS)
async def scan(request: Request) -> Response:
    """
    Scan a target for vulnerabilities.

    - **target**: source code, URL or network identifier
    - **targetType**: CODE, WEB_APP or NETWORK
    - **settings**: optional deepThinking / autoRemediation toggles
    """
    if request.method == "OPTIONS":
        return Response(status_code=200)
    if request.method != "POST":
        return JSONResponse({"error": METHOD_NOT_ALLOWED}, status_code=405)

    identity = client_identity(request.headers)
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        body = None

    try:
        result = await gateway.scan(body, identity)
    except ScanGatewayError as e:
        if e.status_code >= 500:
            logger.error(f"Scan failed ({type(e).__name__}): {e}")
        return JSONResponse({"error": e.public_message}, status_code=e.status_code)
    except Exception:
        logger.exception("Scan handler error")
        return JSONResponse({"error": "Internal server error during scan."}, status_code=500)

    return JSONResponse(result.to_payload())
