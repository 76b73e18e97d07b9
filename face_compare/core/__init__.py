"""Core face detection and comparison functionality"""
from .face_detection import (
    FaceDetector,
    detector,
    analyze_distance
)
from .comparison import compare_faces

__all__ = [
    'FaceDetector',
    'detector',
    'analyze_distance',
    'compare_faces'
]
