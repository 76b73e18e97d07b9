"""Face detection and descriptor extraction module.

This module wraps the pretrained models used for comparison: an OpenCV DNN
SSD face detector locates faces, and the face_recognition (dlib) encoder
turns the most salient face into a 128-d descriptor. It also maps descriptor
distance to the similarity, match and confidence values the API reports.
"""

import logging
import threading
from pathlib import Path
from typing import List, Optional, Tuple

import cv2
import face_recognition
import numpy as np

from ..config import (
    DETECTOR_INPUT_SIZE,
    DETECTOR_SCORE_THRESHOLD,
    MATCH_THRESHOLD,
    MEDIUM_CONFIDENCE_THRESHOLD,
)
from ..models.types import ComparisonResult, Confidence, FaceDescriptor, NormalizedImage

logger = logging.getLogger(__name__)

PROTOTXT_FILE = "deploy.prototxt"
CAFFEMODEL_FILE = "res10_300x300_ssd_iter_140000.caffemodel"


class FaceDetectionError(Exception):
    """Base exception for face detection errors."""
    pass


class ModelNotLoadedError(FaceDetectionError):
    """Exception raised when detection is attempted before models load."""
    pass


class DetectionTimeoutError(FaceDetectionError):
    """Exception raised when detection exceeds its deadline."""
    pass


class FaceDetector:
    """Handles face detection and descriptor extraction."""

    # Mean pixel values the SSD detector was trained with (BGR)
    MEAN_VALUES = (104.0, 177.0, 123.0)
    LANDMARK_MODEL = "small"

    def __init__(self, input_size: int = DETECTOR_INPUT_SIZE,
                 score_threshold: float = DETECTOR_SCORE_THRESHOLD):
        """Initialize an unloaded detector.

        Args:
            input_size: Side length the detector input blob is resized to.
            score_threshold: Minimum detection confidence for a face.
        """
        self.input_size = input_size
        self.score_threshold = score_threshold
        self._net = None
        # setInput/forward share the network's buffers
        self._net_lock = threading.Lock()

    @property
    def ready(self) -> bool:
        return self._net is not None

    def load(self, model_dir: Path) -> None:
        """Load detector weights from model_dir.

        Args:
            model_dir: Directory containing the Caffe prototxt and weights.

        Raises:
            FileNotFoundError: If either model file is missing.
        """
        model_dir = Path(model_dir)
        prototxt = model_dir / PROTOTXT_FILE
        weights = model_dir / CAFFEMODEL_FILE
        for path in (prototxt, weights):
            if not path.exists():
                raise FileNotFoundError(f"Model file not found: {path}")

        logger.info(f"Loading face detector from {model_dir}")
        self._net = cv2.dnn.readNetFromCaffe(str(prototxt), str(weights))

    def locate_faces(self, image: NormalizedImage) -> List[Tuple[float, Tuple[int, int, int, int]]]:
        """Detect faces above the score threshold.

        Args:
            image: Input image in BGR format.

        Returns:
            (score, (top, right, bottom, left)) pairs, best score first.
        """
        if self._net is None:
            raise ModelNotLoadedError("Face detection models are not loaded")

        height, width = image.shape[:2]
        blob = cv2.dnn.blobFromImage(
            image, 1.0, (self.input_size, self.input_size), self.MEAN_VALUES
        )
        with self._net_lock:
            self._net.setInput(blob)
            detections = self._net.forward()

        faces = []
        for i in range(detections.shape[2]):
            score = float(detections[0, 0, i, 2])
            if score < self.score_threshold:
                continue

            box = detections[0, 0, i, 3:7] * np.array([width, height, width, height])
            left, top, right, bottom = box.astype(int)
            left, top = max(0, left), max(0, top)
            right, bottom = min(width, right), min(height, bottom)
            if right <= left or bottom <= top:
                continue

            faces.append((score, (int(top), int(right), int(bottom), int(left))))

        faces.sort(key=lambda face: face[0], reverse=True)
        return faces

    def detect_primary_face(self, image: NormalizedImage) -> Optional[FaceDescriptor]:
        """Return the descriptor of the highest-scoring face, or None.

        Only one face per image is considered; additional faces are ignored.
        """
        faces = self.locate_faces(image)
        if not faces:
            return None

        score, location = faces[0]
        logger.debug(f"Primary face at {location} (score {score:.2f}, {len(faces)} found)")

        rgb_image = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
        encodings = face_recognition.face_encodings(
            rgb_image, known_face_locations=[location], model=self.LANDMARK_MODEL
        )
        if not encodings:
            return None
        return encodings[0]

    @staticmethod
    def distance(descriptor1: FaceDescriptor, descriptor2: FaceDescriptor) -> float:
        """Euclidean distance between two face descriptors."""
        return float(face_recognition.face_distance([descriptor1], descriptor2)[0])


# Process-wide detector, loaded once at startup
detector = FaceDetector()


def confidence_for(distance: float) -> Confidence:
    if distance < MATCH_THRESHOLD:
        return "high"
    if distance < MEDIUM_CONFIDENCE_THRESHOLD:
        return "medium"
    return "low"


def analyze_distance(distance: float) -> ComparisonResult:
    """Build the comparison result for a descriptor distance.

    Args:
        distance: Euclidean distance between two descriptors (>= 0).

    Returns:
        Result with match decision, similarity (0-100) and confidence.
    """
    similarity = max(0.0, min(100.0, (1 - distance) * 100))

    return {
        'success': True,
        'match': distance < MATCH_THRESHOLD,
        'distance': round(float(distance), 4),
        'similarity': round(float(similarity), 2),
        'threshold': MATCH_THRESHOLD,
        'confidence': confidence_for(distance)
    }
