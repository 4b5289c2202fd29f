from datetime import datetime, timezone
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging

from app.core.config import settings
from app.core.errors import WorkoutSessionError
from app.db.session import create_tables
from app.routes import workout_sessions


# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info(f"Starting {settings.app_name}")
    logger.info(f"CORS allow_origins: {settings.cors_origins}")
    await create_tables()
    yield
    # Shutdown
    logger.info("Shutting down API")


app = FastAPI(
    title=settings.app_name,
    description="Guided workout sessions with idempotent progress sync",
    version=settings.version,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(WorkoutSessionError)
async def workout_session_error_handler(request: Request, exc: WorkoutSessionError):
    logger.warning(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": exc.to_dict(),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )


app.include_router(workout_sessions.router, prefix="/workout-sessions", tags=["workout-sessions"])


@app.get("/")
async def root():
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.version,
    }


@app.get("/health")
async def health():
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
