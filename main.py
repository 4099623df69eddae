from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging
import google.generativeai as genai

from aircontrol.api import contracts, engineers, equipment_models, schedule, reports, reschedule, import_export, display_settings
from aircontrol.database import engine, Base
from aircontrol.config import settings
from aircontrol.services.errors import DomainError, ValidationError, OracleError, PersistenceError
import aircontrol.models  # noqa: F401  registers tables on Base

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

Base.metadata.create_all(bind=engine)


# Validate Google API Key on startup
def validate_google_api_key():
    """Validate Google API key by making a test request"""
    if not settings.google_api_key:
        logger.warning("GOOGLE_API_KEY is not configured. AI rescheduling will be disabled.")
        return False

    if not settings.validate_google_key_on_startup:
        logger.info("Google API key configured, startup validation skipped.")
        return True

    try:
        genai.configure(api_key=settings.google_api_key)
        # Test the API key by listing models
        models = list(genai.list_models())
        if models:
            logger.info(f"Google API key validated successfully. {len(models)} models available.")
            return True
        else:
            logger.warning("Google API key configured but no models available.")
            return False
    except Exception as e:
        logger.error(f"Google API key validation failed: {e}")
        return False

google_api_valid = validate_google_api_key()

app = FastAPI(title="AirControl Maintenance API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
    expose_headers=["*"],
)


# Domain errors share the HTTPException body shape: {"detail": ...}
@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    if isinstance(exc, ValidationError):
        logger.info(f"{request.method} {request.url.path} rejected: {exc.message}")
    elif isinstance(exc, (OracleError, PersistenceError)):
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    logger.info(f"{request.method} {request.url.path} invalid payload")
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


# Include routers
app.include_router(contracts.router, prefix="/api/contracts", tags=["Contracts"])
app.include_router(engineers.router, prefix="/api/engineers", tags=["Engineers"])
app.include_router(equipment_models.router, prefix="/api/equipment-models", tags=["Equipment Models"])
app.include_router(schedule.router, prefix="/api/schedule", tags=["Schedule"])
app.include_router(reports.router, prefix="/api/reports", tags=["Reports"])
app.include_router(reschedule.router, prefix="/api/reschedule", tags=["AI Rescheduling"])
app.include_router(import_export.router, prefix="/api/import-export", tags=["Import/Export"])
app.include_router(display_settings.router, prefix="/api/settings", tags=["Settings"])

@app.get("/")
async def root():
    return {
        "message": "AirControl Maintenance API is running",
        "google_api_enabled": google_api_valid
    }

@app.get("/api/health")
async def health_check():
    return {
        "status": "healthy",
        "services": {
            "google_ai": google_api_valid
        }
    }
