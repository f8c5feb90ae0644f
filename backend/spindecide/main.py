import asyncio
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from spindecide.config import settings
from spindecide.database import async_session, check_database, close_db, engine, init_db
from spindecide.routers import session_router, rooms_router, recent_router
from spindecide.services.cleanup_service import cleanup_loop
from spindecide.utils.logging_config import setup_logging, fastapi_logger
from spindecide.utils.rate_limit import build_rate_limiter, get_rate_limit_rules, sweep_loop
from spindecide.error_handlers import register_exception_handlers
from spindecide.middleware import RateLimitHeaderMiddleware


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    setup_logging()
    fastapi_logger.info(f"Starting {settings.APP_NAME}")
    await init_db()
    fastapi_logger.info("Database initialized")

    limiter = build_rate_limiter()
    app.state.rate_limiter = limiter
    max_window = max(rule.window for rule in get_rate_limit_rules().values())
    background = [
        asyncio.create_task(sweep_loop(limiter, settings.RATE_LIMIT_SWEEP_SECONDS, max_window))
    ]
    fastapi_logger.info(f"Rate limiter ready ({type(limiter).__name__})")

    if settings.CLEANUP_ENABLED:
        background.append(
            asyncio.create_task(cleanup_loop(async_session, settings.CLEANUP_INTERVAL_SECONDS))
        )
        fastapi_logger.info("Room cleanup task started")

    yield

    # Shutdown
    fastapi_logger.info("Shutting down application")
    for task in background:
        task.cancel()
    await asyncio.gather(*background, return_exceptions=True)
    await limiter.close()
    fastapi_logger.info("Rate limiter closed")
    await close_db()


app = FastAPI(
    title=settings.APP_NAME,
    description="Group decisions: everyone suggests, everyone vetoes once, the host spins",
    version="1.0.0",
    lifespan=lifespan
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Cookie"],
)

# Rate Limit Headers Middleware (must be added after CORS)
if settings.RATE_LIMIT_ENABLED:
    app.add_middleware(RateLimitHeaderMiddleware)

# Global Exception Handlers
register_exception_handlers(app)

# API Routers
app.include_router(session_router)
app.include_router(rooms_router)
app.include_router(recent_router)


# Health Check
@app.get("/api/health")
async def health_check():
    return {"status": "ok", "service": settings.APP_NAME}


@app.get("/ready")
async def readiness_check():
    if not await check_database(engine):
        return JSONResponse(status_code=503, content={"status": "unavailable", "database": False})
    return {"status": "ready", "database": True}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("spindecide.main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
