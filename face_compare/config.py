"""Service configuration.

Deployment settings come from the environment; the timing and scoring
constants are fixed for every deployment.
"""

import os
from pathlib import Path

# Server
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "4000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
SERVICE_NAME = "face-comparison-api"

# Pretrained detector weights (see download_models.py)
MODEL_PATH = Path(os.getenv("MODEL_PATH", "models"))

# Request limits
MAX_BODY_SIZE = 10 * 1024 * 1024  # 10MB, request body and fetched images
REQUEST_TIMEOUT_SECONDS = 30.0
KEEP_ALIVE_TIMEOUT_SECONDS = 40
GRACEFUL_SHUTDOWN_TIMEOUT_SECONDS = 10

# Stage deadlines
FETCH_TIMEOUT_SECONDS = 15.0
DECODE_TIMEOUT_SECONDS = 5.0
DETECTION_TIMEOUT_SECONDS = 20.0
COMPARISON_TIMEOUT_SECONDS = 25.0

# Image normalization
MAX_IMAGE_SIZE = 416

# Detector configuration
DETECTOR_INPUT_SIZE = 320
DETECTOR_SCORE_THRESHOLD = 0.5

# Scoring
MATCH_THRESHOLD = 0.5
MEDIUM_CONFIDENCE_THRESHOLD = 0.7
