from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response
import logging

from lawfirm import config
from lawfirm import models  # noqa: F401  registers the tables
from lawfirm.database import engine, Base
from lawfirm.exceptions import LawFirmError
from lawfirm.auth.routes import router as auth_router
from lawfirm.registrations.routes import router as registrations_router
from lawfirm.admin.routes import router as admin_router
from lawfirm.cases.routes import router as cases_router
from lawfirm.payments.routes import router as payments_router
from lawfirm.notifications.routes import router as notifications_router
from lawfirm.reports.routes import router as reports_router

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
)
logger = logging.getLogger(__name__)

# Create database tables
Base.metadata.create_all(bind=engine)

app = FastAPI(
    title="Law Firm Case Management API",
    description="Case assignment, hearings, staged fee payments and notifications for a law firm",
    version="1.0.0"
)


# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Add middleware for COOP/COEP headers ---
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response: Response = await call_next(request)
        response.headers["Cross-Origin-Opener-Policy"] = "same-origin-allow-popups"
        response.headers["Cross-Origin-Embedder-Policy"] = "unsafe-none"
        return response

app.add_middleware(SecurityHeadersMiddleware)


@app.exception_handler(LawFirmError)
async def law_firm_error_handler(request: Request, exc: LawFirmError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.detail}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


# Include routers
app.include_router(auth_router)
app.include_router(registrations_router)
app.include_router(admin_router)
app.include_router(cases_router)
app.include_router(payments_router)
app.include_router(notifications_router)
app.include_router(reports_router)

@app.get("/")
def root():
    return {
        "message": "Law Firm Case Management API",
        "version": "1.0.0",
        "status": "running"
    }

@app.get("/health")
def health_check():
    return {"status": "healthy"}
