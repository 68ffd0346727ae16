import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import settings
from database import init_db
from api.applications import router as applications_router
from api.approval_levels import router as approval_levels_router
from api.rates import router as rates_router
from api.workflows import router as workflows_router
from services.errors import LoanEngineError

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    logger.info("%s started (database %s)", settings.app_name, settings.database_url.split("://")[0])
    yield


app = FastAPI(
    title=settings.app_name,
    description="KPR home loan origination and approval workflow API",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(LoanEngineError)
async def loan_engine_error_handler(request: Request, exc: LoanEngineError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "code": exc.code})


app.include_router(applications_router)
app.include_router(workflows_router)
app.include_router(rates_router)
app.include_router(approval_levels_router)


@app.get("/health")
async def health():
    return {"status": "ok"}
