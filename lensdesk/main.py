import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import ALLOWED_ORIGINS, SECURITY_HEADERS_ENABLED, UPSTREAM_API_URL
from .domain.agenda.router import router as agenda_router
from .domain.cases.router import router as cases_router
from .domain.notes.router import router as notes_router
from .domain.purchase_orders.router import router as purchase_orders_router
from .domain.repairs.router import router as repairs_router
from .domain.todos.router import router as todos_router
from .errors import ConsoleError
from .redis_client import get_redis_client
from .routes import auth_router
from .schemas import Toast
from .security_headers import SecurityHeadersMiddleware

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"LensDesk console starting up (upstream: {UPSTREAM_API_URL})")
    try:
        get_redis_client()  # Connection test
        logger.info("Redis connection established")
    except Exception as e:
        logger.warning(f"Redis connection failed - query cache and submit locks run in fail-open mode: {e}")

    yield
    logger.info("LensDesk console shutting down...")


app = FastAPI(title="LensDesk Console API", version="1.0.0", lifespan=lifespan)


@app.exception_handler(ConsoleError)
async def console_error_handler(request: Request, exc: ConsoleError):
    """Render console errors as the toast the UI shows"""
    if exc.status_code >= 500:
        logger.error(f"❌ {request.method} {request.url.path} -> {exc.status_code}: {exc.detail}")
    else:
        logger.warning(f"⚠️ {request.method} {request.url.path} -> {exc.status_code}: {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "toast": exc.toast.model_dump(mode="json")},
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Keep FastAPI's 422 body and add a toast for the UI"""
    logger.warning(f"Validation error for {request.url.path}: {exc.errors()}")
    first = exc.errors()[0] if exc.errors() else {}
    toast = Toast.error("Ongeldige invoer", first.get("msg"))
    return JSONResponse(
        status_code=422,
        content={"detail": jsonable_encoder(exc.errors()), "toast": toast.model_dump(mode="json")},
    )


if SECURITY_HEADERS_ENABLED:
    app.add_middleware(SecurityHeadersMiddleware, exclude_paths=["/health", "/docs", "/openapi.json"])
    logger.info("Security headers enabled")
else:
    logger.warning("Security headers DISABLED - only use in development!")

logger.info(f"CORS allowed origins: {ALLOWED_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,  # Session cookies are forwarded to the upstream API
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition"],
)

# Routes
app.include_router(auth_router)
app.include_router(agenda_router)
app.include_router(todos_router)
app.include_router(notes_router)
app.include_router(purchase_orders_router)
app.include_router(repairs_router)
app.include_router(cases_router)


@app.get("/")
def root():
    return {"message": "LensDesk console API is running"}


@app.get("/health")
def health():
    return {"status": "healthy"}
