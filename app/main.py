# Application entrypoint: logging, middleware, error rendering, startup routines and API routers.
import logging
import os
import time
from datetime import datetime, timezone

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .db import Base, engine, DATABASE_URL
from .errors import RentoError
from .routes.apartments import router as apartments_router
from .routes.auth import router as auth_router
from .routes.bookings import router as bookings_router
from .routes.reviews import router as reviews_router
from .routes.users import router as users_router
from .seed import seed_apartments, seeding_enabled

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger("rento.http")


# Parse CORS origins from a comma-separated env var.
# '*' cannot be combined with allow_credentials=True, so it maps to the local dev origins.
def _parse_cors_origins(env_value):
    default_dev_origins = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    if not env_value:
        return default_dev_origins

    origins = [o.strip() for o in env_value.split(",") if o.strip()]
    if "*" in origins:
        return default_dev_origins

    return origins


app = FastAPI(title="Rento API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=_parse_cors_origins(os.getenv("CORS_ORIGINS")),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    logger.info(
        "%s %s -> %s",
        request.method,
        request.url.path,
        response.status_code,
        extra={"duration_ms": round((time.perf_counter() - started) * 1000, 1)},
    )
    return response


# ----------------
# Error rendering: {"success": false, "message": ..., "error": CODE}
# ----------------
@app.exception_handler(RentoError)
async def rento_error_handler(request: Request, exc: RentoError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_dict()))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = f"{field}: {first.get('msg')}" if field else "Invalid request"
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=jsonable_encoder(
            {
                "success": False,
                "message": message,
                "error": "VALIDATION_ERROR",
                "details": {"errors": [{"loc": e.get("loc"), "msg": e.get("msg")} for e in errors]},
            }
        ),
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    if exc.status_code == status.HTTP_404_NOT_FOUND and request.url.path.startswith("/api/"):
        message = "API endpoint not found"
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": message, "error": "HTTP_ERROR"},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "message": "Internal server error", "error": "INTERNAL_ERROR"},
    )


@app.on_event("startup")
def on_startup() -> None:
    # For local SQLite, auto-create tables; other databases rely on Alembic migrations.
    if DATABASE_URL.startswith("sqlite"):
        Base.metadata.create_all(bind=engine)
    if seeding_enabled():
        seed_apartments()


@app.get("/api/health")
def health() -> dict:
    return {
        "success": True,
        "message": "Rento API is running",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


app.include_router(auth_router, prefix="/api/users", tags=["auth"])
app.include_router(users_router, prefix="/api/users", tags=["users"])
app.include_router(apartments_router, prefix="/api/apartments", tags=["apartments"])
app.include_router(bookings_router, prefix="/api/bookings", tags=["bookings"])
app.include_router(reviews_router, prefix="/api/reviews", tags=["reviews"])
