import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn

from config import settings
from database import init_db, async_session
from routers import missions, tasks, badges
from services import catalog
from services.errors import InvalidRowError, NoDataReturnedError, PersistenceError

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("Initializing Mission Board API...")
    await init_db()
    logger.info("Database initialized.")

    if settings.SEED_BADGES:
        async with async_session() as db:
            try:
                await catalog.seed_badges(db)
            except PersistenceError as e:
                logger.warning(f"Failed to seed badge catalog: {e}")

    logger.info("Mission Board API is live.")
    yield
    # Shutdown
    logger.info("Shutting down Mission Board API...")


app = FastAPI(title="Mission Board API", lifespan=lifespan)

# Configure CORS: set CORS_ORIGINS env var for deployments (comma-separated)
origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()] or [
    "http://localhost:5173",
    "http://localhost:3000",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(PersistenceError)
async def persistence_error_handler(request: Request, exc: PersistenceError):
    logger.error(f"{request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=503, content={"detail": str(exc), "error": "persistence_error"})


@app.exception_handler(NoDataReturnedError)
async def no_data_error_handler(request: Request, exc: NoDataReturnedError):
    logger.error(f"{request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=502, content={"detail": str(exc), "error": "no_data_returned"})


@app.exception_handler(InvalidRowError)
async def invalid_row_handler(request: Request, exc: InvalidRowError):
    logger.error(f"{request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"detail": str(exc), "error": "invalid_row"})


# Register routers
app.include_router(missions.router)
app.include_router(tasks.router)
app.include_router(badges.router)


@app.get("/api/health")
async def health_check():
    return {"status": "ok", "service": "Mission Board API"}


if __name__ == "__main__":
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)
