"""Data models and type definitions"""
from typing import Literal, NamedTuple, Optional, Union

import numpy as np
from typing_extensions import NotRequired, TypedDict

# Decoded BGR raster, longest edge clamped (see utils.image.normalize_image)
NormalizedImage = np.ndarray

# 128-d face encoding produced by the recognition model
FaceDescriptor = np.ndarray

Confidence = Literal["high", "medium", "low"]


class ImageSource(NamedTuple):
    """One side of a comparison: a remote URL or inline base64 data."""
    kind: Literal["remote", "inline"]
    value: str

    @classmethod
    def remote(cls, url: str) -> "ImageSource":
        return cls("remote", url)

    @classmethod
    def inline(cls, encoded_data: str) -> "ImageSource":
        return cls("inline", encoded_data)

    @property
    def label(self) -> str:
        return "URL image" if self.kind == "remote" else "uploaded image"


class ComparisonResult(TypedDict):
    success: Literal[True]
    match: bool
    distance: float
    similarity: float
    threshold: float
    confidence: Confidence
    processingTimeMs: NotRequired[int]


class NoFaceResult(TypedDict):
    success: Literal[False]
    match: Literal[False]
    message: str
    processingTimeMs: NotRequired[int]


ComparisonOutcome = Union[ComparisonResult, NoFaceResult]


class CompareRequest(TypedDict, total=False):
    imageUrl: Optional[str]
    base64Image: Optional[str]


class HealthResponse(TypedDict):
    status: Literal["ready", "loading"]
    timestamp: str
    service: str
    uptime: int


class ErrorResponse(TypedDict):
    success: Literal[False]
    error: str
    message: str
    processingTimeMs: NotRequired[int]
