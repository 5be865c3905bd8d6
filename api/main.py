import logging
import os
from contextlib import asynccontextmanager

import httpx
from comfy import ComfyClient
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from generator import Generator
from reaper import start_reaper, stop_reaper
from routers import status, stream, tracks
from track_pool import TrackPool

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
)
logger = logging.getLogger(__name__)

SERVICE_NAME = os.getenv("SERVICE_NAME", "Ambient Audio")


def create_app(track_pool: TrackPool | None = None, generator: Generator | None = None) -> FastAPI:
    """Build the app. Collaborators not passed in are created in the lifespan."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting up %s API", SERVICE_NAME)
        http = None
        if app.state.generator is None:
            http = httpx.AsyncClient(limits=httpx.Limits(max_connections=20, max_keepalive_connections=10))
            comfy = ComfyClient(http)
            comfy.workflow  # fail startup on a missing or malformed template
            app.state.generator = Generator(comfy)
        start_reaper(app.state.track_pool)
        yield
        logger.info("Shutting down %s API", SERVICE_NAME)
        stop_reaper()
        if http is not None:
            await http.aclose()

    app = FastAPI(title=SERVICE_NAME + " API", lifespan=lifespan)
    app.state.track_pool = track_pool or TrackPool()
    app.state.generator = generator

    _hostname = os.environ.get("SERVER_HOSTNAME", "")
    _origins = [f"https://{_hostname}"] if _hostname else ["http://localhost", "http://localhost:5173"]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_origins,
        allow_methods=["GET", "POST", "PATCH", "DELETE"],
        allow_headers=["Content-Type"],
    )

    app.include_router(stream.router)
    app.include_router(tracks.router)
    app.include_router(status.router)

    @app.get("/health")
    def health():
        return {"ok": True}

    return app


app = create_app()
