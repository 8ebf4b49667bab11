import logging
import uuid
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import text
from sqlalchemy.orm import Session
from app.api.tickets import router as tickets_router
from app.api.support_lines import router as support_lines_router
from app.api.funnels import router as funnels_router
from app.api.analytics import router as analytics_router
from app.api.roles import router as roles_router
from app.api.intake import router as intake_router
from app.core.config import settings
from app.core.db import Base, SessionLocal, engine, get_db
from app.core.logging import configure_logging
from app.services.support_lines import SupportLineDirectory
from app.services.users import seed_roles
from app import models  # noqa: F401  registers every table on Base.metadata

configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


def bootstrap_database():
    """Create tables and seed the fixed roles and default support lines."""
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        seed_roles(db)
        if settings.SEED_DEFAULT_LINES:
            SupportLineDirectory(db).initialize_default_lines()
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.AUTO_CREATE_SCHEMA:
        bootstrap_database()
        logger.info("Database schema ready")
    yield


app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Ticket lifecycle, routing and funnel backbone of the CRM.",
    version="1.0.0",
    lifespan=lifespan,
)

@app.middleware("http")
async def add_correlation_id(request: Request, call_next):
    request_id = str(uuid.uuid4())
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response

@app.exception_handler(SQLAlchemyError)
async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError):
    logger.error("Database failure on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=503,
        content={"detail": "Service Unavailable: Database connection or operational failure", "request_id": getattr(request.state, "request_id", None)},
    )

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal Server Error", "request_id": getattr(request.state, "request_id", None)},
    )

@app.get("/health", tags=["system"])
def health_check(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
        db_status = "ok"
    except SQLAlchemyError:
        db_status = "error"
    return {"status": "ok", "database": db_status}

app.include_router(tickets_router)
app.include_router(support_lines_router)
app.include_router(funnels_router)
app.include_router(analytics_router)
app.include_router(roles_router)
app.include_router(intake_router)
