"""Utility functions for image acquisition"""
from .image import (
    acquire,
    acquire_remote,
    acquire_inline,
    normalize_image,
    ImageProcessingError,
    ImageDecodingError,
    DecodeTimeoutError,
    FetchError,
    FetchTimeoutError
)

__all__ = [
    'acquire',
    'acquire_remote',
    'acquire_inline',
    'normalize_image',
    'ImageProcessingError',
    'ImageDecodingError',
    'DecodeTimeoutError',
    'FetchError',
    'FetchTimeoutError'
]
