import logging
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded

from threads_app.config import settings
from threads_app.core.dependencies import get_current_identity
from threads_app.core.route_guard import SessionMiddleware
from threads_app.database.supabase_client import get_supabase
from threads_app.modules.auth.schemas import Identity
from threads_app.modules.auth import routes as auth_routes
from threads_app.modules.profiles import routes as profiles_routes
from threads_app.modules.posts import routes as posts_routes
from threads_app.modules.comments import routes as comments_routes
from threads_app.modules.likes import routes as likes_routes
from threads_app.modules.debug import routes as debug_routes

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])
app = FastAPI(
    title=settings.app_name,
    debug=settings.debug,
    redirect_slashes=False,
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


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
                message["headers"] = list(message["headers"]) + [
                    (b"X-Content-Type-Options", b"nosniff"),
                    (b"X-Frame-Options", b"DENY"),
                    (b"X-XSS-Protection", b"1; mode=block"),
                ]
            await send(message)

        await self.app(scope, receive, send_with_headers)


# Last added runs first: CORS, security headers, then the session guard
app.add_middleware(SessionMiddleware)
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
app.include_router(profiles_routes.router, prefix="/api/v1")
app.include_router(posts_routes.router, prefix="/api/v1")
app.include_router(comments_routes.router, prefix="/api/v1")
app.include_router(likes_routes.router, prefix="/api/v1")
app.include_router(auth_routes.pages_router)
app.include_router(debug_routes.router)


@app.on_event("startup")
async def startup_event():
    logger.info("Application startup (%s)", settings.environment)


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Application shutdown")


@app.get("/")
async def root(identity: Identity = Depends(get_current_identity)):
    return {"message": "Welcome to threads-backend", "status": "healthy", "user_id": identity.id}


@app.get("/health")
@limiter.exempt
async def health():
    return {"status": "healthy"}


@app.get("/ready")
@limiter.exempt
def ready():
    """Readiness check: one anonymous read against the Data Store."""
    try:
        get_supabase().table("profiles").select("id").limit(1).execute()
    except Exception as e:
        logger.warning(f"Readiness check failed: {str(e)}")
        return JSONResponse(status_code=503, content={"status": "unavailable"})
    return {"status": "ready"}
