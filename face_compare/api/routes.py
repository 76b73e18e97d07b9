"""Face comparison API routes.

This module provides the health check and the comparison endpoint. The
comparison endpoint gates on model readiness, validates the request, runs
the comparison and maps its outcome or failure to a JSON response.
"""

import logging
import time
from datetime import datetime, timezone

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from ..config import SERVICE_NAME
from ..core.comparison import ComparisonTimeoutError, compare_faces
from ..core.face_detection import FaceDetectionError, detector
from ..models.types import CompareRequest, HealthResponse, ImageSource
from ..utils.image import ImageProcessingError

# Configure logging
logger = logging.getLogger(__name__)

router = APIRouter()

STARTED_AT = time.monotonic()

ALLOWED_URL_SCHEMES = ("http://", "https://")


def elapsed_ms(start_time: float) -> int:
    return int((time.monotonic() - start_time) * 1000)


def error_response(status_code: int, error: str, message: str, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={'success': False, 'error': error, 'message': message, **extra}
    )


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Report whether the models have finished loading."""
    return {
        'status': 'ready' if detector.ready else 'loading',
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'service': SERVICE_NAME,
        'uptime': int(time.monotonic() - STARTED_AT)
    }


@router.post("/compare")
async def compare(request_data: CompareRequest) -> JSONResponse:
    """Compare the face in a remote image with the face in an inline image.

    Args:
        request_data: Dictionary containing both images.
            - imageUrl: http(s) URL of the first image
            - base64Image: Base64 string (or data URI) of the second image

    Returns:
        200 with match, distance, similarity, threshold and confidence, or
        with a message naming the image without a face. 400 for invalid
        input, 503 while models load, 500 if the comparison fails. Every
        comparison response carries processingTimeMs.
    """
    request_id = time.time_ns() // 1_000_000
    start_time = time.monotonic()
    logger.info(f"[{request_id}] New comparison request")

    if not detector.ready:
        return error_response(
            status.HTTP_503_SERVICE_UNAVAILABLE,
            "Service Unavailable",
            "Models are still loading. Try again in a moment."
        )

    image_url = request_data.get('imageUrl')
    base64_image = request_data.get('base64Image')

    if not image_url or not base64_image:
        return error_response(
            status.HTTP_400_BAD_REQUEST,
            "Missing required field",
            "'imageUrl' and 'base64Image' are required"
        )

    if not image_url.startswith(ALLOWED_URL_SCHEMES):
        return error_response(
            status.HTTP_400_BAD_REQUEST,
            "Invalid URL",
            "imageUrl must start with http:// or https://"
        )

    logger.info(f"[{request_id}] URL: {image_url}")
    logger.info(f"[{request_id}] Base64 length: {len(base64_image):,} chars")

    try:
        outcome = await compare_faces(ImageSource.remote(image_url), ImageSource.inline(base64_image))

    except (ImageProcessingError, FaceDetectionError, ComparisonTimeoutError) as e:
        processing_time = elapsed_ms(start_time)
        logger.warning(f"[{request_id}] Comparison failed after {processing_time}ms: {e}")
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Face comparison failed",
            str(e),
            processingTimeMs=processing_time
        )
    except Exception as e:
        processing_time = elapsed_ms(start_time)
        logger.exception(f"[{request_id}] Unexpected error after {processing_time}ms")
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Face comparison failed",
            str(e) or e.__class__.__name__,
            processingTimeMs=processing_time
        )

    processing_time = elapsed_ms(start_time)
    logger.info(f"[{request_id}] Result: {'MATCH' if outcome['match'] else 'NO MATCH'}")
    logger.info(f"[{request_id}] Total time: {processing_time}ms")

    return JSONResponse(content={**outcome, 'processingTimeMs': processing_time})
