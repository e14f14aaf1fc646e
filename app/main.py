import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core import config
from app.core.errors import JobTrackerError
from app.core.logging_config import setup_logging

# ✅ Import All API Routes
from app.api.routes import jobs, crm, health

setup_logging(config.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if config.RUN_MIGRATIONS:
        from app.db.migrate import run_migrations
        run_migrations()
    yield


# ============================================
# ✅ FASTAPI APP INIT
# ============================================

app = FastAPI(title="Job Tracker API", lifespan=lifespan)

# Set to a JobSearchProvider instance by the deployment; search answers 503 without one
app.state.search_provider = None

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["Authorization", "Content-Type"],
)


# ============================================
# ✅ DOMAIN ERRORS -> HTTP
# ============================================

@app.exception_handler(JobTrackerError)
async def job_tracker_error_handler(request: Request, exc: JobTrackerError):
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# ============================================
# ✅ REGISTER ALL ROUTERS
# ============================================

app.include_router(jobs.router)
app.include_router(crm.router)
app.include_router(health.router)


@app.get("/")
def root():
    return {"status": "Job Tracker API running"}
