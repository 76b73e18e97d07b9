"""Tests for the comparison orchestrator."""

import asyncio
import time
from unittest.mock import patch

import numpy as np
import pytest

from face_compare.core import comparison
from face_compare.core.comparison import ComparisonTimeoutError, compare_faces, run_both
from face_compare.core.face_detection import DetectionTimeoutError, FaceDetector
from face_compare.models.types import ImageSource
from face_compare.utils.image import DecodeTimeoutError, FetchError, ImageDecodingError

URL_SOURCE = ImageSource.remote("https://example.com/face.jpg")
INLINE_SOURCE = ImageSource.inline("data:image/jpeg;base64,AAAA")


class StubDetector(FaceDetector):
    """Detector returning preset descriptors keyed by image tag."""

    def __init__(self, descriptors, delay: float = 0.0):
        super().__init__()
        self.descriptors = descriptors
        self.delay = delay
        self.calls = []

    def detect_primary_face(self, image):
        self.calls.append(image)
        if self.delay:
            time.sleep(self.delay)
        return self.descriptors[image]


def vector_at(distance: float) -> np.ndarray:
    vector = np.zeros(128)
    vector[0] = distance
    return vector


async def fake_acquire(source):
    return source.kind


@pytest.fixture
def images_acquired():
    """Acquisition that tags each image with its source kind."""
    with patch.object(comparison, "acquire", fake_acquire):
        yield


class TestCompareFaces:
    """Tests for compare_faces."""

    @pytest.mark.asyncio
    async def test_same_person(self, images_acquired):
        detector = StubDetector({"remote": vector_at(0.0), "inline": vector_at(0.32)})

        result = await compare_faces(URL_SOURCE, INLINE_SOURCE, face_detector=detector)

        assert result == {
            'success': True,
            'match': True,
            'distance': 0.32,
            'similarity': 68.0,
            'threshold': 0.5,
            'confidence': 'high'
        }

    @pytest.mark.asyncio
    async def test_different_people(self, images_acquired):
        detector = StubDetector({"remote": vector_at(0.0), "inline": vector_at(0.9)})

        result = await compare_faces(URL_SOURCE, INLINE_SOURCE, face_detector=detector)

        assert result['match'] is False
        assert result['confidence'] == 'low'
        assert result['similarity'] == pytest.approx(10.0)

    @pytest.mark.asyncio
    async def test_repeatable(self, images_acquired):
        detector = StubDetector({"remote": vector_at(0.1), "inline": vector_at(0.7)})

        first = await compare_faces(URL_SOURCE, INLINE_SOURCE, face_detector=detector)
        second = await compare_faces(URL_SOURCE, INLINE_SOURCE, face_detector=detector)

        assert first == second

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "missing,message",
        [
            (("inline",), "No face detected in uploaded image"),
            (("remote",), "No face detected in URL image"),
            (("remote", "inline"), "No faces detected in both images"),
        ],
    )
    async def test_no_face(self, images_acquired, missing, message):
        descriptors = {"remote": vector_at(0.0), "inline": vector_at(0.1)}
        for kind in missing:
            descriptors[kind] = None
        detector = StubDetector(descriptors)

        result = await compare_faces(URL_SOURCE, INLINE_SOURCE, face_detector=detector)

        assert result == {'success': False, 'match': False, 'message': message}
        assert 'distance' not in result

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "failing,error",
        [
            ("remote", FetchError("URL image error: HTTP 404: Not Found", status=404)),
            ("inline", ImageDecodingError("Invalid base64 image data")),
            ("inline", DecodeTimeoutError("Base64 image decode timeout (5s)")),
        ],
    )
    async def test_acquisition_failure_propagates(self, failing, error):
        """Test one failed acquisition surfaces its own error and skips detection."""

        async def acquire(source):
            if source.kind == failing:
                raise error
            return source.kind

        detector = StubDetector({"remote": vector_at(0.0), "inline": vector_at(0.0)})

        with patch.object(comparison, "acquire", acquire):
            with pytest.raises(type(error)) as exc_info:
                await compare_faces(URL_SOURCE, INLINE_SOURCE, face_detector=detector)

        assert exc_info.value is error
        assert detector.calls == []

    @pytest.mark.asyncio
    async def test_acquisition_failure_cancels_other_side(self):
        cancelled = asyncio.Event()

        async def acquire(source):
            if source.kind == "inline":
                raise ImageDecodingError("Invalid base64 image data")
            try:
                await asyncio.sleep(5)
            except asyncio.CancelledError:
                cancelled.set()
                raise

        with patch.object(comparison, "acquire", acquire):
            with pytest.raises(ImageDecodingError):
                await compare_faces(URL_SOURCE, INLINE_SOURCE, face_detector=StubDetector({}))

        await asyncio.wait_for(cancelled.wait(), timeout=1)

    @pytest.mark.asyncio
    async def test_detection_timeout(self, images_acquired):
        detector = StubDetector({"remote": vector_at(0.0), "inline": vector_at(0.0)}, delay=0.5)

        with patch.object(comparison, "DETECTION_TIMEOUT_SECONDS", 0.05):
            with pytest.raises(DetectionTimeoutError, match="Face detection timeout"):
                await compare_faces(URL_SOURCE, INLINE_SOURCE, face_detector=detector)

    @pytest.mark.asyncio
    async def test_comparison_timeout_during_acquisition(self):
        async def acquire(source):
            await asyncio.sleep(5)

        with patch.object(comparison, "acquire", acquire), \
                patch.object(comparison, "COMPARISON_TIMEOUT_SECONDS", 0.05):
            with pytest.raises(ComparisonTimeoutError, match="Face comparison timeout"):
                await compare_faces(URL_SOURCE, INLINE_SOURCE, face_detector=StubDetector({}))

    @pytest.mark.asyncio
    async def test_overall_deadline_takes_precedence(self, images_acquired):
        """Test the overall deadline wins over a longer detection deadline."""
        detector = StubDetector({"remote": vector_at(0.0), "inline": vector_at(0.0)}, delay=0.5)

        with patch.object(comparison, "COMPARISON_TIMEOUT_SECONDS", 0.05), \
                patch.object(comparison, "DETECTION_TIMEOUT_SECONDS", 10):
            with pytest.raises(ComparisonTimeoutError):
                await compare_faces(URL_SOURCE, INLINE_SOURCE, face_detector=detector)


class TestRunBoth:
    """Tests for run_both."""

    @pytest.mark.asyncio
    async def test_returns_results_in_order(self):
        async def value(result, delay):
            await asyncio.sleep(delay)
            return result

        assert await run_both(value("a", 0.02), value("b", 0.0)) == ["a", "b"]

    @pytest.mark.asyncio
    async def test_runs_concurrently(self):
        start = time.monotonic()
        await run_both(asyncio.sleep(0.1), asyncio.sleep(0.1))
        assert time.monotonic() - start < 0.19
