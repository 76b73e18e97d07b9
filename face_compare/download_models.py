"""Download the pretrained face detector weights.

Fetches the OpenCV SSD face detector files into MODEL_PATH, skipping any
file that is already present.
"""

import logging
import sys
import urllib.request
from pathlib import Path
from typing import Dict

from .config import MODEL_PATH
from .core.face_detection import CAFFEMODEL_FILE, PROTOTXT_FILE

logger = logging.getLogger(__name__)

MODEL_URLS: Dict[str, str] = {
    PROTOTXT_FILE: 'https://raw.githubusercontent.com/opencv/opencv/master/samples/dnn/face_detector/deploy.prototxt',
    CAFFEMODEL_FILE: 'https://raw.githubusercontent.com/opencv/opencv_3rdparty/dnn_samples_face_detector_20170830/res10_300x300_ssd_iter_140000.caffemodel'
}


def download_models(model_dir: Path = MODEL_PATH) -> bool:
    """Ensure every detector file exists in model_dir.

    Returns:
        True if all files are present afterwards, False if a download failed.
    """
    model_dir = Path(model_dir)
    model_dir.mkdir(parents=True, exist_ok=True)

    for filename, url in MODEL_URLS.items():
        filepath = model_dir / filename
        if filepath.exists():
            logger.info(f"{filename} already present")
            continue

        logger.info(f"Downloading {filename}...")
        try:
            urllib.request.urlretrieve(url, filepath)
        except OSError as e:
            filepath.unlink(missing_ok=True)
            logger.error(f"Error downloading {filename}: {e}")
            logger.error(f"Download the model files manually into {model_dir}: {', '.join(MODEL_URLS)}")
            return False
        logger.info(f"Downloaded {filename}")
    return True


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    sys.exit(0 if download_models() else 1)


if __name__ == "__main__":
    main()
