import logging
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded

from admindash.config import settings
from admindash.core.errors import BackendError, ErrorKind, MissingConfigurationError
from admindash.modules.auth import routes as auth_routes
from admindash.modules.users import routes as users_routes
from admindash.modules.roles import routes as roles_routes
from admindash.modules.products import routes as products_routes
from admindash.modules.customers import routes as customers_routes
from admindash.modules.orders import routes as orders_routes
from admindash.modules.diagnostics import routes as diagnostics_routes

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logger = logging.getLogger(__name__)

HTTP_STATUS_BY_KIND = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.MULTIPLE_ROWS: 409,
    ErrorKind.ACCESS_DENIED: 403,
    ErrorKind.TIMEOUT: 504,
    ErrorKind.MISSING_RELATIONSHIP: 500,
    ErrorKind.VALIDATION: 422,
    ErrorKind.MUTATION_FAILED: 500,
    ErrorKind.UNKNOWN: 500,
}

limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])
app = FastAPI(
    title=settings.app_name,
    debug=settings.debug,
    redirect_slashes=False,
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(BackendError)
async def backend_error_handler(request: Request, exc: BackendError):
    status_code = HTTP_STATUS_BY_KIND[exc.kind]
    if status_code >= 500:
        logger.error(f"Backend error on {request.url.path}: {exc!r}")
    detail = exc.message
    if status_code >= 500 and settings.is_production:
        detail = "Backend request failed"
    return JSONResponse(status_code=status_code, content={"detail": detail, "kind": exc.kind.value})


@app.exception_handler(MissingConfigurationError)
async def missing_configuration_handler(request: Request, exc: MissingConfigurationError):
    return JSONResponse(
        status_code=503,
        content={"detail": "Supabase is not configured", "missing": exc.missing},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception: %s", exc)
    if settings.is_production:
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})
    return JSONResponse(status_code=500, content={"detail": str(exc)})


class SecurityHeadersMiddleware:
    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        async def send_with_headers(message):
            if message["type"] == "http.response.start":
                message.setdefault("headers", [])
                message["headers"].extend([
                    (b"X-Content-Type-Options", b"nosniff"),
                    (b"X-Frame-Options", b"DENY"),
                    (b"Referrer-Policy", b"strict-origin-when-cross-origin"),
                ])
            await send(message)

        await self.app(scope, receive, send_with_headers)


@app.middleware("http")
async def session_cookie_middleware(request: Request, call_next):
    """Write session cookie changes queued by the auth client during the request"""
    response = await call_next(request)
    storage = getattr(request.state, "cookie_storage", None)
    if storage is not None and storage.has_pending_writes:
        storage.apply(response)
    return response


app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include module routes
app.include_router(auth_routes.router, prefix="/api/v1")
app.include_router(users_routes.router, prefix="/api/v1")
app.include_router(roles_routes.router, prefix="/api/v1")
app.include_router(products_routes.router, prefix="/api/v1")
app.include_router(customers_routes.router, prefix="/api/v1")
app.include_router(orders_routes.router, prefix="/api/v1")
app.include_router(diagnostics_routes.router, prefix="/api/v1")


@app.on_event("startup")
async def startup_event():
    logger.info("Application startup")
    missing = settings.missing_settings()
    if missing:
        logger.warning(f"Supabase is not configured, missing: {', '.join(missing)}")


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Application shutdown")


@app.get("/")
async def root():
    return {"message": f"Welcome to {settings.app_name}", "status": "healthy"}


@app.get("/health")
@limiter.exempt
async def health():
    return {"status": "healthy"}


@app.get("/ready")
@limiter.exempt
async def ready():
    """Readiness check: ready once the Supabase settings are present."""
    if not settings.is_configured:
        return JSONResponse(status_code=503, content={"status": "not ready", "missing": settings.missing_settings()})
    return {"status": "ready"}
