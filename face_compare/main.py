import asyncio
import logging
import signal
import sys
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request, status
from fastapi.exception_handlers import http_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .api.middleware import BodySizeLimitMiddleware, RequestTimeoutMiddleware
from .api.routes import router
from .config import (
    GRACEFUL_SHUTDOWN_TIMEOUT_SECONDS,
    HOST,
    KEEP_ALIVE_TIMEOUT_SECONDS,
    LOG_LEVEL,
    MODEL_PATH,
    PORT,
)
from .core.face_detection import FaceDetector, detector

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)


async def load_models(face_detector: FaceDetector, model_dir: Path) -> bool:
    """Load models off the event loop; stop the server if they cannot load."""
    logger.info(f"Loading models from: {model_dir}")
    try:
        await asyncio.to_thread(face_detector.load, model_dir)
    except Exception:
        logger.exception("Failed to load face models, shutting down")
        signal.raise_signal(signal.SIGTERM)
        return False
    logger.info("Face models loaded successfully")
    return True


@asynccontextmanager
async def lifespan(app: FastAPI):
    loader = asyncio.create_task(load_models(detector, MODEL_PATH))
    yield
    if not loader.done():
        loader.cancel()
    elif not loader.result():
        app.state.models_failed = True


# Initialize FastAPI app
app = FastAPI(title="Face Comparison API", lifespan=lifespan)
app.state.models_failed = False

# Innermost first: the timeout wraps routing only
app.add_middleware(RequestTimeoutMiddleware)
app.add_middleware(BodySizeLimitMiddleware)

# Enable CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            'success': False,
            'error': "Invalid request body",
            'message': "Request body must be a JSON object with string fields 'imageUrl' and 'base64Image'"
        }
    )


@app.exception_handler(StarletteHTTPException)
async def not_found_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code != status.HTTP_404_NOT_FOUND:
        return await http_exception_handler(request, exc)
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={
            'error': "Not Found",
            'message': f"Cannot {request.method} {request.url.path}"
        }
    )


# Mount routes
app.include_router(router)


def run() -> None:
    """Serve the app; exit with status 1 if the models failed to load."""
    import uvicorn

    logger.info(f"Face Comparison API starting on http://{HOST}:{PORT}")
    logger.info("  Health:  GET /health")
    logger.info("  Compare: POST /compare")
    uvicorn.run(
        app,
        host=HOST,
        port=PORT,
        timeout_keep_alive=KEEP_ALIVE_TIMEOUT_SECONDS,
        timeout_graceful_shutdown=GRACEFUL_SHUTDOWN_TIMEOUT_SECONDS
    )
    if app.state.models_failed:
        sys.exit(1)


if __name__ == "__main__":
    run()
