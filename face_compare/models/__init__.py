"""Data models and type definitions"""
from .types import (
    NormalizedImage,
    FaceDescriptor,
    ImageSource,
    ComparisonResult,
    NoFaceResult,
    ComparisonOutcome,
    CompareRequest,
    HealthResponse,
    ErrorResponse
)

__all__ = [
    'NormalizedImage',
    'FaceDescriptor',
    'ImageSource',
    'ComparisonResult',
    'NoFaceResult',
    'ComparisonOutcome',
    'CompareRequest',
    'HealthResponse',
    'ErrorResponse'
]
