import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from credit_gate import models
from credit_gate.config import settings
from credit_gate.database import create_db_and_tables
from credit_gate.errors import LedgerError
from credit_gate.limiter import limiter
from credit_gate.routers import admin, credits

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Startup: creating database tables...")
    create_db_and_tables()
    yield
    logger.info("Shutdown: cleaning up...")

app = FastAPI(lifespan=lifespan)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler) #type: ignore
app.include_router(credits.router)
app.include_router(admin.router)


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    """
    Renders ledger errors as {"success": false, "error": <code>, ...}.
    402 means "top up", 403 means "not allowed".
    """
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

@app.get("/")
def read_root():
    return {"status":"ok", "service": "Credit gate"}
