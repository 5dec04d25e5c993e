"""news-intel FastAPI application."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routes import router
from collectors.runner import init_default_sources
from config import API_HOST, API_PORT
from db.database import init_db
from pipeline import get_pipeline
from scheduler import start_scheduler, stop_scheduler

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Initialize DB, seed sources and start the scheduler; stop it on shutdown."""
    init_db()
    init_default_sources()
    pipeline = get_pipeline()
    pipeline.engine.reload_config()
    start_scheduler(pipeline)
    yield
    stop_scheduler()


app = FastAPI(
    title="news-intel",
    description="News intelligence pipeline: RSS collection, LLM translation and scheduled digests",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)

if __name__ == "__main__":
    uvicorn.run("main:app", host=API_HOST, port=API_PORT)
