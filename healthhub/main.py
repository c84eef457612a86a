import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Import all models to ensure they're registered with SQLAlchemy Base
# This is needed for relationships between models in different files
from . import (
    models,  # noqa: F401
    models_clinical,  # noqa: F401
    models_messaging,  # noqa: F401
    models_pharmacy,  # noqa: F401
    models_staff,  # noqa: F401
    models_supplier,  # noqa: F401
)
from .config import ALLOWED_ORIGINS, SECURITY_HEADERS_ENABLED
from .database import Base, engine
from .domain.appointments.router import router as appointments_router
from .domain.inventory.router import router as inventory_router
from .domain.lab_requests.router import router as lab_requests_router
from .domain.messaging.router import router as messaging_router
from .domain.pos.router import router as pos_router
from .domain.prescriptions.router import router as prescriptions_router
from .domain.scheduling.router import router as scheduling_router
from .domain.staff.router import router as staff_router
from .domain.supplier.router import router as supplier_router
from .domain.wallet.router import router as wallet_router
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
    logger.info("Application starting up...")
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("Database tables created successfully")
    except Exception as e:
        # Another worker may have created them first
        error_msg = str(e)
        if "already exists" in error_msg or "duplicate key" in error_msg:
            logger.info("Database tables already exist (created by another worker)")
        else:
            logger.error(f"Failed to create database tables: {e}")

    from .rate_limiter import get_redis_client

    if get_redis_client() is None:
        logger.warning("Redis unavailable - rate limiting operates from process memory")

    yield
    logger.info("Application shutting down...")


app = FastAPI(title="HealthHub API", version="1.0.0", lifespan=lifespan)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Convert 422 validation errors from HTTPBearer to 401 authentication errors
    when the issue is with the Authorization header
    """
    for error in exc.errors():
        if error.get("loc") and "authorization" in str(error.get("loc")).lower():
            logger.warning(
                f"Authentication failed for {request.url.path}: Missing or invalid Authorization header"
            )
            return JSONResponse(
                status_code=401,
                content={
                    "detail": "Not authenticated. Please provide a valid Bearer token in the Authorization header."
                },
            )

    logger.warning(f"Validation error for {request.url.path}: {exc.errors()}")
    return JSONResponse(status_code=422, content={"detail": jsonable_errors(exc)})


def jsonable_errors(exc: RequestValidationError) -> list:
    # ctx may carry exception instances that JSONResponse cannot encode
    return [{k: v for k, v in error.items() if k != "ctx"} for error in exc.errors()]


@app.middleware("http")
async def log_requests(request: Request, call_next):
    try:
        response = await call_next(request)
        return response
    except Exception as e:
        logger.error(f"{request.method} {request.url.path} - Error: {str(e)}")
        raise


if SECURITY_HEADERS_ENABLED:
    app.add_middleware(
        SecurityHeadersMiddleware, exclude_paths=["/health", "/docs", "/openapi.json"]
    )
    logger.info("Security headers enabled")
else:
    logger.warning("Security headers DISABLED - only use in development!")

logger.info(f"CORS allowed origins: {ALLOWED_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,  # employee_session cookie
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
)

# Routes
app.include_router(staff_router)
app.include_router(appointments_router)
app.include_router(prescriptions_router)
app.include_router(lab_requests_router)
app.include_router(scheduling_router)
app.include_router(wallet_router)
app.include_router(messaging_router)
app.include_router(inventory_router)
app.include_router(pos_router)
app.include_router(supplier_router)


@app.get("/")
def root():
    return {"message": "HealthHub API is running"}


@app.get("/health")
def health():
    return {"status": "healthy"}
