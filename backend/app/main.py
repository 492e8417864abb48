"""FastAPI application."""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import settings
from .domain_errors import DomainError
from .problem_details import domain_error_handler
from .routers import incident_files, incidents, system_parameters
from .schemas import HealthCheckResponse

APP_VERSION = "1.0.0"

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# Create app
app = FastAPI(
    title="Logistics Trouble Tracker",
    version=APP_VERSION,
    description="Backend API for logistics quality trouble tracking (1st/2nd/3rd info workflow)"
)

# Production safety checks.
if settings.ENV.lower() == "production" and settings.JWT_SECRET_KEY == "change-me":
    raise RuntimeError("JWT_SECRET_KEY must be set in production.")
if settings.ENV.lower() == "production" and not settings.cors_origins:
    raise RuntimeError("ALLOWED_ORIGINS must be set in production (explicit frontend origin required).")
if settings.ENV.lower() == "production" and any(origin.strip() == "*" for origin in settings.cors_origins):
    raise RuntimeError("ALLOWED_ORIGINS must be explicit in production (no wildcard when using credentials).")
if settings.ENV.lower() == "production" and any(
    origin.startswith("http://localhost") or origin.startswith("http://127.0.0.1") for origin in settings.cors_origins
):
    raise RuntimeError("ALLOWED_ORIGINS contains localhost in production; set it to your real frontend origin.")

# CORS
cors_methods = ["GET", "POST", "PUT", "DELETE", "OPTIONS"]
cors_headers = ["Authorization", "Content-Type"]
if settings.ENV.lower() != "production":
    cors_headers = ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=cors_methods,
    allow_headers=cors_headers,
    expose_headers=["Content-Disposition"],
)

app.add_exception_handler(DomainError, domain_error_handler)

# Include routers
app.include_router(incidents.router, prefix="/api/v1")
app.include_router(incident_files.router, prefix="/api/v1")
app.include_router(system_parameters.router, prefix="/api/v1")


@app.get("/api/v1/system/health", response_model=HealthCheckResponse)
def health_check():
    """Health check endpoint."""
    return HealthCheckResponse(status="ok", version=APP_VERSION)


@app.get("/")
def root():
    """Root endpoint."""
    return {
        "message": "Logistics Trouble Tracker API",
        "version": APP_VERSION,
        "docs": "/docs"
    }
