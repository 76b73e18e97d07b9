"""Shared fixtures for face comparison tests."""

import base64

import pytest

from tests.helpers import encode_jpeg, make_image


@pytest.fixture
def dummy_image():
    """Create a dummy 640x480 BGR image."""
    return make_image(640, 480)


@pytest.fixture
def dummy_image_bytes(dummy_image):
    """JPEG-encoded dummy image."""
    return encode_jpeg(dummy_image)


@pytest.fixture
def dummy_image_base64(dummy_image_bytes):
    """Base64-encoded dummy image without a data URI prefix."""
    return base64.b64encode(dummy_image_bytes).decode("utf-8")


@pytest.fixture
def dummy_data_uri(dummy_image_base64):
    """Dummy image as a data URI."""
    return f"data:image/jpeg;base64,{dummy_image_base64}"
