import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.routes import router
from .config import Settings, settings as default_settings
from .core.service import FaceRecognitionService

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def create_app(service: Optional[FaceRecognitionService] = None,
               settings: Optional[Settings] = None) -> FastAPI:
    """Build the API application.

    Args:
        service: Pre-built service (tests inject one with a fake backend).
        settings: Settings used when the service is built here.
    """
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        face_service = service or FaceRecognitionService(settings)
        app.state.face_service = face_service
        # Load models at startup so the first visitor does not wait for them
        await face_service.initialize()
        logger.info("Face recognition service ready")
        yield
        app.state.face_service = None

    app = FastAPI(title="facedesk", lifespan=lifespan)

    # Enable CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Mount routes
    app.include_router(router, prefix="/api")
    return app


configure_logging(default_settings.log_level)

# Initialize FastAPI app
app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=default_settings.host, port=default_settings.port)
