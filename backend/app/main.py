import logging
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings

# ─── Logging setup (file + console) ───
_LOG_DIR = Path(settings.log_dir) if settings.log_dir else Path(__file__).resolve().parent.parent / "logs"
_LOG_DIR.mkdir(parents=True, exist_ok=True)

_log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

logging.basicConfig(
    level=_log_level,
    format="%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    handlers=[
        logging.StreamHandler(),
        RotatingFileHandler(
            _LOG_DIR / "tripfare.log",
            maxBytes=10 * 1024 * 1024,  # 10 MB
            backupCount=5,
            encoding="utf-8",
        ),
    ],
)

# Quiet noisy libraries
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

from app.routers import flights

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    from app.services.amadeus_client import amadeus_client
    from app.services.cache_service import cache_service

    if amadeus_client.demo_mode:
        logger.warning("Amadeus credentials not configured, serving demo flight offers")

    yield

    # Shutdown
    await amadeus_client.close()
    await cache_service.close()
    logger.info("HTTP clients closed")


app = FastAPI(
    title="TripFare",
    description="Trip planning flight search with offer filtering and ranking",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(flights.router, prefix="/api/flights", tags=["flights"])


@app.get("/api/health")
async def health_check():
    return {"status": "ok", "service": "tripfare"}
