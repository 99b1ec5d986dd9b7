"""FastAPI application entrypoint for the Travel Buddy backend.

Sets up the application, middleware and authentication routes and provides
a lifespan context manager that creates the account tables on startup and
disposes the engine on shutdown.
"""

import asyncio
from contextlib import asynccontextmanager

import uvicorn
from api.routes.admin import router as admin_router
from api.routes.auth import router as auth_router
from api.routes.clients import router as clients_router
from config.config import settings
from core.logging import logger
from db.session import engine, initialize_database
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

DB_INIT_MAX_RETRIES = 5


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context to run startup and shutdown routines.

    On startup this creates the account tables, retrying a few times if the
    database isn't ready yet.

    Yields:
        None: Control is returned to FastAPI while the app is running.
    """

    logger.info("Starting up")

    for attempt in range(DB_INIT_MAX_RETRIES):
        try:
            await initialize_database()
            break
        except Exception as e:
            # NOTE: the database container may still be starting.
            if attempt < DB_INIT_MAX_RETRIES - 1:
                logger.warning(
                    "Database connection attempt {} failed: {}. Retrying..",
                    attempt + 1,
                    e,
                )
                await asyncio.sleep(2)
            else:
                logger.exception(
                    "Failed to create database tables after {} attempts",
                    DB_INIT_MAX_RETRIES,
                )
                raise

    yield

    logger.info("Shutting down")
    await engine.dispose()


app = FastAPI(lifespan=lifespan, root_path="/api")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
async def root():
    """Return a simple health check / landing response."""

    return JSONResponse({"message": "Travel Buddy Backend"})


app.include_router(clients_router)
app.include_router(admin_router)
app.include_router(auth_router)


if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8080, reload=True)
