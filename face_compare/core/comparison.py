"""Face comparison orchestration.

A comparison acquires both images concurrently, then runs detection on both
concurrently, and finally scores the two descriptors. Each stage has its own
deadline and the whole comparison runs under an overall deadline; when the
overall deadline fires, in-flight work is cancelled and its result ignored.
"""

import asyncio
import logging
import time
from typing import Awaitable, List, Optional, TypeVar

from ..config import COMPARISON_TIMEOUT_SECONDS, DETECTION_TIMEOUT_SECONDS
from ..models.types import ComparisonOutcome, FaceDescriptor, ImageSource, NoFaceResult
from ..utils.image import acquire
from .face_detection import DetectionTimeoutError, FaceDetector, analyze_distance, detector

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ComparisonTimeoutError(Exception):
    """Exception raised when a comparison exceeds its overall deadline."""
    pass


async def run_both(first: Awaitable[T], second: Awaitable[T]) -> List[T]:
    """Await two operations concurrently.

    The first failure is raised as-is and the other operation is
    cancelled rather than awaited.
    """
    tasks = [asyncio.ensure_future(first), asyncio.ensure_future(second)]
    try:
        return await asyncio.gather(*tasks)
    finally:
        for task in tasks:
            task.cancel()


def no_face_outcome(source_a: ImageSource, source_b: ImageSource,
                    descriptor_a: Optional[FaceDescriptor],
                    descriptor_b: Optional[FaceDescriptor]) -> NoFaceResult:
    if descriptor_a is None and descriptor_b is None:
        message = "No faces detected in both images"
    elif descriptor_a is None:
        message = f"No face detected in {source_a.label}"
    else:
        message = f"No face detected in {source_b.label}"

    return {'success': False, 'match': False, 'message': message}


async def compare_faces(source_a: ImageSource, source_b: ImageSource,
                        face_detector: FaceDetector = detector) -> ComparisonOutcome:
    """Compare the faces in two image sources.

    Args:
        source_a: First image (the remote URL in API requests).
        source_b: Second image (the inline upload in API requests).
        face_detector: Loaded detector used for both images.

    Returns:
        A comparison result, or a no-face result naming the image(s)
        without a detectable face.

    Raises:
        ImageProcessingError: If either image cannot be acquired.
        DetectionTimeoutError: If detection exceeds its deadline.
        ComparisonTimeoutError: If the whole comparison exceeds its deadline.
    """
    start_time = time.monotonic()

    try:
        async with asyncio.timeout(COMPARISON_TIMEOUT_SECONDS):
            logger.info("Step 1: Loading images...")
            image_a, image_b = await run_both(acquire(source_a), acquire(source_b))
            logger.info(f"Images loaded in {(time.monotonic() - start_time) * 1000:.0f}ms")

            logger.info("Step 2: Detecting faces...")
            detect_start = time.monotonic()
            try:
                async with asyncio.timeout(DETECTION_TIMEOUT_SECONDS):
                    descriptor_a, descriptor_b = await run_both(
                        asyncio.to_thread(face_detector.detect_primary_face, image_a),
                        asyncio.to_thread(face_detector.detect_primary_face, image_b),
                    )
            except TimeoutError:
                raise DetectionTimeoutError(
                    f"Face detection timeout ({DETECTION_TIMEOUT_SECONDS:.0f}s)"
                ) from None
            logger.info(f"Faces detected in {(time.monotonic() - detect_start) * 1000:.0f}ms")
    except TimeoutError:
        raise ComparisonTimeoutError(
            f"Face comparison timeout ({COMPARISON_TIMEOUT_SECONDS:.0f}s)"
        ) from None

    if descriptor_a is None or descriptor_b is None:
        return no_face_outcome(source_a, source_b, descriptor_a, descriptor_b)

    logger.info("Step 3: Comparing faces...")
    distance = face_detector.distance(descriptor_a, descriptor_b)
    result = analyze_distance(distance)
    logger.info(f"Comparison complete in {(time.monotonic() - start_time) * 1000:.0f}ms")
    return result
