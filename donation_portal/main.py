from typing import Optional
import time

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker
import structlog
import uvicorn

from donation_portal.api.admin import router as admin_router
from donation_portal.api.auth import router as auth_router
from donation_portal.api.blog import router as blog_router
from donation_portal.api.certificates import files_router as certificate_files_router
from donation_portal.api.certificates import router as certificates_router
from donation_portal.api.donations import router as donations_router
from donation_portal.api.programs import router as programs_router
from donation_portal.api.reports import router as reports_router
from donation_portal.api.reports import transparency_router
from donation_portal.api.users import router as users_router
from donation_portal.core.config import Settings, get_settings
from donation_portal.core.errors import register_exception_handlers, remember_request_body
from donation_portal.core.logging import configure_logging
from donation_portal.database.database import AsyncSessionLocal, close_db, init_db, ping_db
from donation_portal.middleware.logging import logging_middleware
from donation_portal.middleware.metrics import MetricsMiddleware, metrics_endpoint
from donation_portal.services.background import BackgroundDispatcher
from donation_portal.services.certificate import CertificateService
from donation_portal.services.email import EmailService
from donation_portal.services.email_sender import EmailSender
from donation_portal.services.payment import PaymentService
from donation_portal.services.payment_gateway import RazorpayGateway
from donation_portal.services.progress_report import ProgressReportJob
from donation_portal.services.scheduler import SchedulerService

configure_logging()

logger = structlog.get_logger(__name__)
settings = get_settings()

# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Donation management API: programs, payments, certificates and donor reporting",
    version="1.0.0",
    debug=settings.debug,
    dependencies=[Depends(remember_request_body)],
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(MetricsMiddleware)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    return await logging_middleware(request, call_next)


register_exception_handlers(app)


def wire_services(
    app: FastAPI,
    session_factory: async_sessionmaker,
    settings: Settings,
    gateway: Optional[RazorpayGateway] = None,
    email_sender: Optional[EmailSender] = None,
):
    """Build the long-lived services and attach them to app.state"""
    gateway = gateway or RazorpayGateway.from_settings(settings)
    dispatcher = BackgroundDispatcher()
    certificates = CertificateService.from_settings(settings)
    emails = EmailService.from_settings(settings, sender=email_sender)

    app.state.session_factory = session_factory
    app.state.gateway = gateway
    app.state.dispatcher = dispatcher
    app.state.certificates = certificates
    app.state.emails = emails
    app.state.payments = PaymentService(
        gateway=gateway,
        dispatcher=dispatcher,
        session_factory=session_factory,
        certificates=certificates,
        emails=emails,
    )
    app.state.scheduler = SchedulerService(
        job=ProgressReportJob(session_factory, emails),
        enabled=settings.scheduler_enabled,
        timezone=settings.scheduler_timezone,
    )


wire_services(app, AsyncSessionLocal, settings)


@app.on_event("startup")
async def startup_event():
    """Initialize application on startup"""
    logger.info(
        "Starting Donation Portal",
        service_name=settings.service_name,
        environment=settings.environment,
        mock_payments=settings.mock_payments,
    )

    await init_db()
    app.state.certificates.ensure_directory()

    if settings.scheduler_autostart:
        await app.state.scheduler.start()

    logger.info("Application startup completed successfully")


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on application shutdown"""
    logger.info("Shutting down Donation Portal")

    await app.state.scheduler.stop()
    await app.state.dispatcher.drain()
    await close_db()

    logger.info("Application shutdown completed successfully")


# Health check endpoints
@app.get("/health")
async def health_check():
    """Basic health check"""
    return {
        "status": "healthy",
        "service": settings.service_name,
        "timestamp": time.time(),
    }


@app.get("/health/ready")
async def readiness_check(request: Request):
    """Readiness check: database round trip plus scheduler state"""
    health_status = {
        "status": "ready",
        "service": settings.service_name,
        "timestamp": time.time(),
        "database": "connected",
        "scheduler": "running" if request.app.state.scheduler.running else "stopped",
    }

    try:
        await ping_db(request.app.state.session_factory)
    except (SQLAlchemyError, OSError) as e:
        logger.warning("Database health check failed", error=str(e))
        health_status["status"] = "not ready"
        health_status["database"] = f"error: {str(e)}"
        return JSONResponse(status_code=503, content=health_status)

    return health_status


@app.get("/metrics")
async def metrics(request: Request):
    """Prometheus metrics endpoint"""
    return await metrics_endpoint(request)


# Include routers
app.include_router(auth_router)
app.include_router(users_router)
app.include_router(programs_router)
app.include_router(donations_router)
app.include_router(certificates_router)
app.include_router(certificate_files_router)
app.include_router(admin_router)
app.include_router(reports_router)
app.include_router(transparency_router)
app.include_router(blog_router)


if __name__ == "__main__":
    uvicorn.run(
        "donation_portal.main:app",
        host="0.0.0.0",
        port=settings.port,
        reload=settings.debug,
        log_level="debug" if settings.debug else "info",
    )
