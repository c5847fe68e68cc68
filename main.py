from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from config import settings
from database import engine, Base, verify_db_connection
from routers import customers, transactions, ledger, activity
from services.errors import LedgerError
import models  # noqa: F401  registers tables on Base.metadata
import logging

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Team Ledger API",
    description="Customer receivables and payables ledger for teams",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json"
)

@app.exception_handler(LedgerError)
async def ledger_exception_handler(request: Request, exc: LedgerError):
    """Validation, not-found and persistence failures carry their own status code"""
    if exc.status_code >= 500:
        logger.error(f"Ledger failure on {request.url.path}: {exc.message}")
    else:
        logger.info(f"Rejected {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler to prevent information leakage"""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "An internal error occurred. Please try again later."}
    )

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    max_age=600,
)

app.include_router(customers.router)
app.include_router(transactions.router)
app.include_router(ledger.router)
app.include_router(activity.router)

@app.on_event("startup")
async def startup_event():
    """Create tables on startup"""
    if engine is None:
        logger.error("DATABASE_URL not configured - database features disabled")
        return

    try:
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created/verified")
    except Exception as e:
        logger.error(f"Startup error: {e}")

@app.get("/")
def root():
    return {
        "message": "Team Ledger API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health"
    }

@app.get("/health")
def health_check():
    db_status = "connected" if verify_db_connection() else "not connected"
    return {
        "status": "healthy",
        "database": db_status
    }
